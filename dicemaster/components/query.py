"""
查询解析

将内联查询拆成 名称 / 优势标记 / 骰子表达式 / 阈值：
    "1d20"              -> 骰子
    "A 1d20>15"         -> 优势 + 骰子 + 阈值
    "智力 1d20+2"       -> 名称 + 骰子
    "智力 D 1d20+2>15"  -> 名称 + 劣势 + 骰子 + 阈值
"""
from typing import Optional, Tuple

from ..core import get_logger
from ..core.config import DiceConfig
from ..core.events import AdvantageMode, RollRequest, RollSpec
from ..core.exceptions import ParseError
from .notation import default_spec, parse_notation

logger = get_logger(__name__)


def split_tokens(text: str) -> Tuple[str, AdvantageMode, str]:
    """返回 (检定名称, 优势模式, 骰子部分)"""
    tokens = text.split()

    if len(tokens) == 1:
        return "", AdvantageMode.NONE, tokens[0]

    if len(tokens) == 2:
        mode = AdvantageMode.from_token(tokens[0])
        if mode is not None:
            return "", mode, tokens[1]
        return tokens[0], AdvantageMode.NONE, tokens[1]

    # 三段及以上只取前三段
    mode = AdvantageMode.from_token(tokens[1]) or AdvantageMode.NONE
    return tokens[0], mode, tokens[2]


def split_threshold(raw_dice: str, default_threshold: Optional[int]) -> Tuple[str, Optional[int]]:
    """拆出 >阈值，阈值无法解析时使用默认阈值"""
    parts = raw_dice.split(">")
    dice = parts[0]
    if len(parts) != 2:
        return dice, default_threshold

    try:
        return dice, int(parts[1])
    except ValueError:
        logger.debug(f"阈值 {parts[1]!r} 无法解析，使用默认阈值 {default_threshold}")
        return dice, default_threshold


def normalize_advantage(spec: RollSpec) -> RollSpec:
    """
    多颗骰子无法进行优势/劣势判定，直接清除；
    保留优势/劣势时 dice_count 为 1，由掷骰引擎负责掷 2 颗
    """
    if spec.dice_count > 1 and spec.advantage_mode != AdvantageMode.NONE:
        return spec.with_changes(advantage_mode=AdvantageMode.NONE)
    return spec


def parse_query(text: str, dice_config: DiceConfig) -> RollRequest:
    is_default_query = not text.strip()
    raw_query = dice_config.default_query if is_default_query else text.strip()

    check_name, mode, raw_dice = split_tokens(raw_query)
    raw_dice, threshold = split_threshold(raw_dice, dice_config.default_threshold)

    notation_valid = True
    try:
        spec = parse_notation(raw_dice)
    except ParseError as e:
        logger.warning(f"骰子表达式解析失败，使用默认骰子: {e}")
        spec = default_spec(dice_config)
        notation_valid = False

    spec = normalize_advantage(spec.with_changes(check_threshold=threshold, advantage_mode=mode))

    return RollRequest(
        raw_query=raw_query,
        raw_dice=raw_dice,
        spec=spec,
        check_name=check_name,
        is_default_query=is_default_query,
        notation_valid=notation_valid,
    )
