"""
events模块
定义了模块间传递的数据结构：掷骰请求、熵状态、掷骰结果
"""
import hashlib
from enum import Enum
from dataclasses import dataclass, replace
from typing import Optional, Tuple

SEED_MASK = (1 << 64) - 1


class AdvantageMode(Enum):
    NONE = ""
    ADVANTAGE = "A"
    DISADVANTAGE = "D"

    @classmethod
    def from_token(cls, token: str) -> Optional["AdvantageMode"]:
        """查询中的 A / D 标记，其他内容返回 None"""
        if token == cls.ADVANTAGE.value:
            return cls.ADVANTAGE
        if token == cls.DISADVANTAGE.value:
            return cls.DISADVANTAGE
        return None


class CheckVerdict(Enum):
    CRITICAL_SUCCESS = "critical_success"
    CRITICAL_FAILURE = "critical_failure"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class RollSpec:
    """
    一次掷骰的结构化描述
    dice_count: 骰子数量 (>=1)
    dice_faces: 骰子面数 (>=1)
    modifier: 调整值之和，可为负
    modifier_text: 调整值原文，如 "+2-1"，仅用于展示
    check_threshold: 检定阈值，None 表示不检定
    advantage_mode: 优势/劣势
    """
    dice_count: int
    dice_faces: int
    modifier: int = 0
    modifier_text: str = ""
    check_threshold: Optional[int] = None
    advantage_mode: AdvantageMode = AdvantageMode.NONE

    def with_changes(self, **changes) -> "RollSpec":
        return replace(self, **changes)


@dataclass(frozen=True)
class EntropyState:
    """
    熵缓存状态快照
    raw_hash: 最近一次获取到的区块哈希
    last_refreshed_at: 最近一次成功刷新的时间戳（秒）
    draws_since_refresh: 刷新后已使用的次数
    """
    raw_hash: str = ""
    last_refreshed_at: float = 0.0
    draws_since_refresh: int = 0


@dataclass(frozen=True)
class BlockInfo:
    hash: str
    height: str


@dataclass(frozen=True)
class SeedMaterial:
    """一次取种的原料，seed 由三者确定性地混合得到"""
    hash_token: str
    use_index: int
    clock_us: int

    @property
    def seed(self) -> int:
        digest = hashlib.sha256(self.hash_token.encode("utf-8")).digest()
        stable = int.from_bytes(digest[:8], "big", signed=False)
        return (stable + self.use_index + self.clock_us) & SEED_MASK


@dataclass(frozen=True)
class RollOutcome:
    """
    掷骰结果
    individual_results: 每颗骰子的点数，顺序即掷出顺序
    aggregate: 求和，或优势取大/劣势取小
    seed_used: 本次使用的随机种子
    final_value: max(aggregate + modifier, 1)
    verdict: 检定结论，未检定且非大成功/大失败时为 None
    """
    individual_results: Tuple[int, ...]
    aggregate: int
    seed_used: int
    final_value: int
    verdict: Optional[CheckVerdict] = None

    @property
    def is_critical(self) -> bool:
        return self.verdict in (CheckVerdict.CRITICAL_SUCCESS, CheckVerdict.CRITICAL_FAILURE)


@dataclass(frozen=True)
class RollRequest:
    """
    查询解析结果
    raw_query: 用户原始输入（空查询时为默认表达式）
    raw_dice: 去掉 >阈值 后的骰子表达式原文
    check_name: 检定名称，如 "智力"
    is_default_query: 用户输入为空
    notation_valid: 表达式是否解析成功（失败时 spec 为默认骰子）
    """
    raw_query: str
    raw_dice: str
    spec: RollSpec
    check_name: str = ""
    is_default_query: bool = False
    notation_valid: bool = True


@dataclass(frozen=True)
class RollResolution:
    request: RollRequest
    outcome: RollOutcome

    @property
    def spec(self) -> RollSpec:
        return self.request.spec
