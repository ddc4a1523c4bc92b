"""
骰子表达式解析

语法: [count]d<faces>[(+|-)adjustment]*

- count 省略时为 1
- faces 为紧跟 d 之后的连续数字，必填
- 其余部分中所有 "+数字" / "-数字" 依次累加为修正值，原文拼接后用于展示
- 不参与以上任何部分的字符直接忽略（允许 "2d6+3火焰伤害" 这类写法）
"""
import re

from ..core.config import DiceConfig
from ..core.events import RollSpec
from ..core.exceptions import ParseError, LimitExceeded

COUNT_RE = re.compile(r"[0-9]+")
FACES_RE = re.compile(r"[0-9]*")
MODIFIER_RE = re.compile(r"[+-][0-9]+")


def _to_int(expression: str, digits: str, what: str) -> int:
    """超长数字串会超出 int() 的转换上限，同样按格式错误处理"""
    try:
        return int(digits)
    except ValueError as e:
        raise ParseError(expression, f"{what} is not a usable number: {e}") from e


def parse_notation(expression: str) -> RollSpec:
    """
    解析骰子表达式，只处理纯骰子部分（名称、A/D、>阈值 由查询层拆分）

    例: "3d6+2-1" -> 3 颗 6 面骰, modifier=1, modifier_text="+2-1"

    Raises:
        ParseError: 找不到 d、数量/面数不是数字、数量或面数为 0
    """
    d_index = expression.find("d")
    if d_index == -1:
        raise ParseError(expression, "missing 'd'")

    count_str = expression[:d_index]
    if count_str == "":
        dice_count = 1
    elif COUNT_RE.fullmatch(count_str):
        dice_count = _to_int(expression, count_str, "dice count")
    else:
        raise ParseError(expression, f"dice count {count_str!r} is not a number")

    faces_str = FACES_RE.match(expression, d_index + 1).group()
    if not faces_str:
        raise ParseError(expression, "missing dice faces after 'd'")
    dice_faces = _to_int(expression, faces_str, "dice faces")

    if dice_count < 1 or dice_faces < 1:
        raise ParseError(expression, "dice count and faces must be at least 1")

    remaining = expression[d_index + 1 + len(faces_str):]
    adjustments = MODIFIER_RE.findall(remaining)

    return RollSpec(
        dice_count=dice_count,
        dice_faces=dice_faces,
        modifier=sum(_to_int(expression, token, "adjustment") for token in adjustments),
        modifier_text="".join(adjustments),
    )


def check_limits(spec: RollSpec, dice_config: DiceConfig) -> None:
    """数量或面数超出上限时抛出 LimitExceeded，不做截断"""
    if spec.dice_count > dice_config.max_count or spec.dice_faces > dice_config.max_faces:
        raise LimitExceeded(
            dice_count=spec.dice_count,
            dice_faces=spec.dice_faces,
            max_count=dice_config.max_count,
            max_faces=dice_config.max_faces,
        )


def default_spec(dice_config: DiceConfig) -> RollSpec:
    """表达式无法解析时使用的默认骰子（默认 1d20，无修正）"""
    return RollSpec(dice_count=dice_config.default_count, dice_faces=dice_config.default_faces)
