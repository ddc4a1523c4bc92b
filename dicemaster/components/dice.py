import random
from typing import List, Optional, Sequence

from ..core import get_logger, get_settings
from ..core.config import DiceConfig
from ..core.events import AdvantageMode, CheckVerdict, RollOutcome, RollSpec
from ..core.exceptions import RollEngineInvariantViolation
from .entropy import EntropyCache, get_entropy_cache
from .notation import check_limits

logger = get_logger(__name__)

CRIT_DIE_FACES = 20
RESULT_LOG_LIMIT = 64


def draw_dice(seed: int, faces: int, count: int) -> List[int]:
    """用给定种子掷 count 颗 faces 面骰，每颗点数在 [1, faces]"""
    rng = random.Random(seed)
    return [rng.randint(1, faces) for _ in range(count)]


def aggregate_results(results: Sequence[int], mode: AdvantageMode) -> int:
    if mode == AdvantageMode.ADVANTAGE:
        return max(results)
    if mode == AdvantageMode.DISADVANTAGE:
        return min(results)
    return sum(results)


def judge(spec: RollSpec, aggregate: int, final_value: int) -> Optional[CheckVerdict]:
    """
    检定结论
    d20 掷出 1 / 20 时为大失败 / 大成功，优先于阈值比较；
    否则有阈值时 final_value >= 阈值 即成功
    """
    if spec.dice_faces == CRIT_DIE_FACES:
        if aggregate == 1:
            return CheckVerdict.CRITICAL_FAILURE
        if aggregate == CRIT_DIE_FACES:
            return CheckVerdict.CRITICAL_SUCCESS

    if spec.check_threshold is None:
        return None
    if final_value >= spec.check_threshold:
        return CheckVerdict.SUCCESS
    return CheckVerdict.FAILURE


def evaluate(spec: RollSpec, results: Sequence[int], seed: int, mode: AdvantageMode) -> RollOutcome:
    """根据已掷出的点数计算合计、最终值和检定结论"""
    aggregate = aggregate_results(results, mode)
    final_value = max(aggregate + spec.modifier, 1)
    return RollOutcome(
        individual_results=tuple(results),
        aggregate=aggregate,
        seed_used=seed,
        final_value=final_value,
        verdict=judge(spec, aggregate, final_value),
    )


class RollEngine:
    """
    掷骰引擎
    每次 roll 从熵缓存取一次种子，构造独立的随机数生成器
    """

    def __init__(self, cache: Optional[EntropyCache] = None, dice_config: Optional[DiceConfig] = None):
        self.cache = cache or get_entropy_cache()
        self.dice_config = dice_config or get_settings().dice

    @staticmethod
    def effective_mode(spec: RollSpec) -> AdvantageMode:
        """
        前置条件：设置了优势/劣势时 dice_count 必须为 1（由查询层 normalize_advantage 保证）
        """
        if spec.advantage_mode != AdvantageMode.NONE and spec.dice_count != 1:
            raise RollEngineInvariantViolation(
                f"{spec.advantage_mode.name} requires exactly one die, got {spec.dice_count}"
            )
        return spec.advantage_mode

    async def roll(self, spec: RollSpec) -> RollOutcome:
        check_limits(spec, self.dice_config)

        try:
            mode = self.effective_mode(spec)
        except RollEngineInvariantViolation as e:
            logger.warning(f"优势/劣势参数不合法，按普通求和处理: {e}")
            mode = AdvantageMode.NONE

        count = 2 if mode != AdvantageMode.NONE else spec.dice_count

        material = await self.cache.current_seed_material()
        seed = material.seed
        results = draw_dice(seed, spec.dice_faces, count)

        result_str = str(results)
        if len(result_str) > RESULT_LOG_LIMIT:
            result_str = result_str[:RESULT_LOG_LIMIT] + "..."
        logger.info(f"掷骰完成: seed={seed}, result={result_str}")

        return evaluate(spec, results, seed, mode)
