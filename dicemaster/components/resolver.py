from typing import Optional

from ..core import get_logger, get_settings
from ..core.config import DiceConfig
from ..core.events import RollResolution
from .dice import RollEngine
from .notation import check_limits
from .query import parse_query

logger = get_logger(__name__)


class Resolver:
    """查询处理主入口：解析 -> 上限检查 -> 掷骰"""

    def __init__(self, engine: Optional[RollEngine] = None, dice_config: Optional[DiceConfig] = None):
        self.dice_config = dice_config or get_settings().dice
        self.engine = engine or RollEngine(dice_config=self.dice_config)

    async def resolve(self, text: str) -> RollResolution:
        """
        超出上限时抛出 LimitExceeded，由调用方渲染提示
        """
        request = parse_query(text, self.dice_config)
        check_limits(request.spec, self.dice_config)

        outcome = await self.engine.roll(request.spec)
        logger.debug(f"查询处理完成: query={request.raw_query!r}, final={outcome.final_value}")
        return RollResolution(request=request, outcome=outcome)
