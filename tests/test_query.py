"""
测试查询拆分：名称 / 优势标记 / 阈值 / 默认查询
"""
from dicemaster.core.config import DiceConfig
from dicemaster.core.events import AdvantageMode, RollSpec
from dicemaster.components.query import normalize_advantage, parse_query, split_threshold, split_tokens


def test_bare_dice():
    request = parse_query("1d20", DiceConfig())

    assert request.check_name == ""
    assert request.raw_dice == "1d20"
    assert request.spec.advantage_mode == AdvantageMode.NONE
    assert request.spec.check_threshold == 10
    assert request.notation_valid
    assert not request.is_default_query


def test_advantage_with_threshold():
    request = parse_query("A 1d20>15", DiceConfig())

    assert request.check_name == ""
    assert request.spec.advantage_mode == AdvantageMode.ADVANTAGE
    assert request.spec.dice_count == 1
    assert request.spec.check_threshold == 15
    assert request.raw_dice == "1d20"


def test_named_check():
    request = parse_query("智力 1d20+2", DiceConfig())

    assert request.check_name == "智力"
    assert request.spec.advantage_mode == AdvantageMode.NONE
    assert request.spec.modifier == 2


def test_named_disadvantage_check():
    request = parse_query("智力 D 1d20+1-2>15", DiceConfig())

    assert request.check_name == "智力"
    assert request.spec.advantage_mode == AdvantageMode.DISADVANTAGE
    assert request.spec.modifier == -1
    assert request.spec.modifier_text == "+1-2"
    assert request.spec.check_threshold == 15


def test_unknown_advantage_token_is_ignored():
    assert split_tokens("智力 X 1d20") == ("智力", AdvantageMode.NONE, "1d20")
    assert split_tokens("智力 A 1d20 多余") == ("智力", AdvantageMode.ADVANTAGE, "1d20")


def test_extra_whitespace():
    assert split_tokens("  A   1d20 ") == ("", AdvantageMode.ADVANTAGE, "1d20")


def test_empty_query_uses_default():
    request = parse_query("   ", DiceConfig())

    assert request.is_default_query
    assert request.raw_query == "1d20>10"
    assert request.raw_dice == "1d20"
    assert request.spec.dice_count == 1
    assert request.spec.dice_faces == 20
    assert request.spec.check_threshold == 10


def test_invalid_notation_falls_back_to_default_spec():
    request = parse_query("智力 abc>12", DiceConfig())

    assert not request.notation_valid
    assert request.check_name == "智力"
    assert request.spec.dice_count == 1
    assert request.spec.dice_faces == 20
    assert request.spec.modifier == 0
    assert request.spec.check_threshold == 12


def test_oversized_number_falls_back_to_default_spec():
    request = parse_query("1d" + "9" * 5000, DiceConfig())

    assert not request.notation_valid
    assert (request.spec.dice_count, request.spec.dice_faces) == (1, 20)

    request = parse_query("1d20>" + "9" * 5000, DiceConfig())
    assert request.notation_valid
    assert request.spec.check_threshold == 10


def test_threshold_parsing():
    assert split_threshold("1d20>15", 10) == ("1d20", 15)
    assert split_threshold("1d20", 10) == ("1d20", 10)
    assert split_threshold("1d20>abc", 10) == ("1d20", 10)
    assert split_threshold("1d20>5>6", 10) == ("1d20", 10)
    assert split_threshold("1d20", None) == ("1d20", None)


def test_threshold_disabled_by_config():
    request = parse_query("1d20", DiceConfig(default_threshold=None))
    assert request.spec.check_threshold is None


def test_advantage_cleared_for_multiple_dice():
    request = parse_query("A 2d20", DiceConfig())

    assert request.spec.advantage_mode == AdvantageMode.NONE
    assert request.spec.dice_count == 2


def test_normalize_advantage_keeps_single_die():
    spec = RollSpec(dice_count=1, dice_faces=20, advantage_mode=AdvantageMode.DISADVANTAGE)
    assert normalize_advantage(spec) is spec


def test_parse_query_does_not_check_limits():
    request = parse_query("1001d6", DiceConfig())
    assert request.spec.dice_count == 1001
