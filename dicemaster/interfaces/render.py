"""
结果渲染
负责所有面向用户的文本：检定结论、掷骰明细、帮助、上限提示。
markdown_v2=True 时输出可直接用于 Telegram MarkdownV2 的文本。
"""
from typing import Optional

from ..core.config import DiceConfig
from ..core.events import AdvantageMode, CheckVerdict, RollResolution
from ..core.exceptions import LimitExceeded

# Telegram MarkdownV2 中需要转义、但模板本身不会当作标记使用的字符
MARKDOWN_V2_SPECIALS = "-()>+[].~=!#{}"
# 用户输入的内容额外转义标记字符
USER_TEXT_SPECIALS = "\\_*`|"

ADVANTAGE_LABELS = {
    AdvantageMode.ADVANTAGE: "优势",
    AdvantageMode.DISADVANTAGE: "劣势",
}

CHECK_EXAMPLE = "举例: [智力 A 1d20+1-2>15] 1个20面色子优势最终结果+1再-2 大于15通过检定"
NUMBER_EXAMPLE = "举例: [A 1d20+1-2] 1个20面色子优势最终结果+1再-2"
HELP_TITLE = "帮助 & 关于"
HELP_DESCRIPTION = "使用方法 & 报告错误"
LIMIT_TITLE = "数量限制"
ERROR_TITLE = "在获取随机数的时候发生了点错误"
ERROR_DESCRIPTION = "点击查看错误"


def safe_markdown_v2(text: str) -> str:
    for ch in MARKDOWN_V2_SPECIALS:
        text = text.replace(ch, "\\" + ch)
    return text


def escape_user_text(text: str) -> str:
    for ch in USER_TEXT_SPECIALS:
        text = text.replace(ch, "\\" + ch)
    return text


def _dice_count_label(resolution: RollResolution) -> int:
    return len(resolution.outcome.individual_results)


def render_roll_text(resolution: RollResolution, markdown_v2: bool = False) -> str:
    """掷骰明细：骰子、调整值、最终结果、种子"""
    spec = resolution.spec
    outcome = resolution.outcome
    results = " ".join(str(r) for r in outcome.individual_results)

    lines = [f"🎲 `{_dice_count_label(resolution)}d{spec.dice_faces} [{results}] = {outcome.aggregate}`"]
    if spec.modifier_text:
        lines.append(f"调整值: `{spec.modifier_text} = {spec.modifier}`")
    lines.append(f"最终结果: `{outcome.final_value}`")
    lines.append(f"Seed: `{outcome.seed_used}`")

    text = "\n".join(lines)
    return safe_markdown_v2(text) if markdown_v2 else text


def _check_label(resolution: RollResolution, markdown_v2: bool, emphasize: bool = True) -> str:
    """如 "(*优势*)属性 [智力] 检定" """
    spec = resolution.spec
    label = ""
    if spec.advantage_mode != AdvantageMode.NONE:
        mark = "*" if emphasize else ""
        label = f"({mark}{ADVANTAGE_LABELS[spec.advantage_mode]}{mark})"
    label += "属性"

    check_name = resolution.request.check_name
    if check_name:
        if markdown_v2:
            check_name = escape_user_text(check_name)
        label += f" [{check_name}] "
    return label + "检定"


def render_verdict(resolution: RollResolution) -> str:
    outcome = resolution.outcome
    threshold = resolution.spec.check_threshold

    if outcome.verdict == CheckVerdict.CRITICAL_FAILURE:
        return "*大失败(Crit Miss)*"
    if outcome.verdict == CheckVerdict.CRITICAL_SUCCESS:
        return "*大成功(Crit Hit)*"
    if outcome.verdict == CheckVerdict.SUCCESS:
        return f"*成功* `{outcome.final_value}>={threshold}`"
    if outcome.verdict == CheckVerdict.FAILURE:
        return f"*失败* `{outcome.final_value}<{threshold}`"
    return ""


def render_check_text(resolution: RollResolution, markdown_v2: bool = False) -> str:
    """检定卡片正文：检定结论 + 分隔线 + 掷骰明细"""
    line = _check_label(resolution, markdown_v2)
    verdict = render_verdict(resolution)
    if verdict:
        line = f"{line} {verdict}"

    text = f"{line}\n----\n{render_roll_text(resolution)}"
    return safe_markdown_v2(text) if markdown_v2 else text


def render_check_title(resolution: RollResolution) -> str:
    raw_dice = resolution.request.raw_dice
    if resolution.request.is_default_query:
        return f"[属性检定] 掷🎲 {raw_dice}"

    label = _check_label(resolution, markdown_v2=False, emphasize=False)
    return f"{label} 掷🎲 {raw_dice}"


def render_number_title(resolution: RollResolution) -> str:
    return f"[仅数字] 掷🎲 {resolution.request.raw_dice}"


def render_limit_text(error: LimitExceeded) -> str:
    return f"色子数量不能大于{error.max_count} & 面数不能大于{error.max_faces}"


def render_help_text(dice_config: DiceConfig, markdown_v2: bool = False) -> str:
    lines = [
        "*DnD DM - The Dice Master*",
        "`1d20` 一个20面的色子 (1~20)",
        "`4d8` 4个8面的色子 (4~32) 建议选仅数字 选检定默认>10",
        "`1d20+5` 一个20面的色子+5 (6~25)",
        "`1d20>15` 一个20面的色子(1~20) 大于15检定成功",
        "`A 1d20>15` 一个20面的色子(1~20) 带优势(扔2个取大) 大于15检定成功",
        "`D 1d20>15` 一个20面的色子(1~20) 带劣势(扔2个取小) 大于15检定成功",
        "`A 1d20+2>15` 一个20面的色子+2(3~22) 带优势(扔2个取大) 大于15检定成功",
        "`自定义名字 D 1d20>15` 带名字的检定 一个20面的色子(1~20) 带劣势(扔2个取小) 大于15检定成功",
        "属性检定：带 *大成功(20)* 和 *大失败(1)*",
        f"限制: 色子数量不能大于{dice_config.max_count} & 面数不能大于{dice_config.max_faces} "
        "||(你是在玩什么超级DnD吗)||",
    ]
    text = "\n".join(lines)
    return safe_markdown_v2(text) if markdown_v2 else text


def render_error_text(raw_query: str, error: Optional[BaseException]) -> str:
    """Markdown (旧版) 格式的错误详情"""
    return f"User input: ``{raw_query}``\n```{error}```"
