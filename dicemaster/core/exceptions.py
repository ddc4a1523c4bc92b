"""
异常定义
"""
from enum import Enum
from typing import Optional


class DiceMasterError(Exception):
    """所有业务异常的基类"""


class ParseErrorKind(Enum):
    INVALID_FORMAT = "InvalidFormat"


class ParseError(DiceMasterError):
    """骰子表达式不符合 [count]d<faces>[±n]* 语法"""

    def __init__(self, expression: str, detail: str, kind: ParseErrorKind = ParseErrorKind.INVALID_FORMAT):
        self.expression = expression
        self.detail = detail
        self.kind = kind
        super().__init__(f"{kind.value}: {detail} ({expression!r})")


class LimitExceeded(DiceMasterError):
    """骰子数量或面数超过配置上限"""

    def __init__(self, dice_count: int, dice_faces: int, max_count: int, max_faces: int):
        self.dice_count = dice_count
        self.dice_faces = dice_faces
        self.max_count = max_count
        self.max_faces = max_faces
        super().__init__(
            f"dice {dice_count}d{dice_faces} exceeds limits "
            f"(count <= {max_count}, faces <= {max_faces})"
        )


class EntropySourceUnavailable(DiceMasterError):
    """熵源获取失败（网络错误、响应格式错误、缺少字段）"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class RollEngineInvariantViolation(DiceMasterError):
    """优势/劣势掷骰要求 dice_count == 1"""


class TelegramApiError(DiceMasterError):
    """Bot API 返回 ok=false 或 HTTP 错误"""

    def __init__(self, method: str, description: str, error_code: Optional[int] = None):
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(f"{method} failed ({error_code}): {description}")
