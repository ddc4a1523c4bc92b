"""
FastAPI 接口服务
提供掷骰与熵源状态的 HTTP 接口
"""
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from ..core import get_logger, get_settings
from ..core.exceptions import LimitExceeded
from ..components.entropy import EntropyCache, get_entropy_cache
from ..components.resolver import Resolver
from . import render

logger = get_logger(__name__)


# ============================================
# Pydantic 模型
# ============================================

class RollRequestBody(BaseModel):
    """掷骰请求"""
    query: str = Field("", description="查询文本，如 \"智力 A 1d20+2>15\"，为空时使用默认表达式")


class RollResponse(BaseModel):
    """掷骰响应"""
    query: str
    check_name: str
    advantage: Optional[str] = None
    dice_count: int
    dice_faces: int
    modifier: int
    modifier_text: str
    threshold: Optional[int] = None
    notation_valid: bool
    results: List[int]
    aggregate: int
    final_value: int
    verdict: Optional[str] = None
    seed: int
    text: str


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str
    block_hash: str
    last_refreshed_at: float
    draws_since_refresh: int
    version: str = "1.0.0"


# ============================================
# 依赖
# ============================================

_resolver: Optional[Resolver] = None


def get_resolver() -> Resolver:
    global _resolver
    if _resolver is None:
        _resolver = Resolver()
    return _resolver


def get_cache() -> EntropyCache:
    return get_entropy_cache()


# ============================================
# FastAPI 应用
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("API 服务启动中...")
    yield
    logger.info("API 服务关闭中...")


app = FastAPI(
    title="DiceMaster API",
    description="掷骰与检定服务",
    version="1.0.0",
    lifespan=lifespan
)


# ============================================
# API 端点
# ============================================

@app.get("/health", response_model=HealthResponse, tags=["系统"])
async def health_check(cache: EntropyCache = Depends(get_cache)):
    """健康检查，未获取过区块哈希时为 degraded"""
    state = await cache.snapshot()
    return HealthResponse(
        status="healthy" if state.raw_hash else "degraded",
        block_hash=state.raw_hash,
        last_refreshed_at=state.last_refreshed_at,
        draws_since_refresh=state.draws_since_refresh,
    )


@app.post("/roll", response_model=RollResponse, tags=["掷骰"])
async def roll(request: RollRequestBody, resolver: Resolver = Depends(get_resolver)):
    """
    掷骰

    - **query**: `[名称] [A|D] [count]d<faces>[±n...][>阈值]`
    """
    try:
        resolution = await resolver.resolve(request.query)
    except LimitExceeded as e:
        raise HTTPException(status_code=422, detail=render.render_limit_text(e))
    except Exception as e:
        logger.error(f"掷骰失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    spec = resolution.spec
    outcome = resolution.outcome
    return RollResponse(
        query=resolution.request.raw_query,
        check_name=resolution.request.check_name,
        advantage=spec.advantage_mode.value or None,
        dice_count=spec.dice_count,
        dice_faces=spec.dice_faces,
        modifier=spec.modifier,
        modifier_text=spec.modifier_text,
        threshold=spec.check_threshold,
        notation_valid=resolution.request.notation_valid,
        results=list(outcome.individual_results),
        aggregate=outcome.aggregate,
        final_value=outcome.final_value,
        verdict=outcome.verdict.value if outcome.verdict else None,
        seed=outcome.seed_used,
        text=render.render_check_text(resolution),
    )


@app.get("/roll", response_model=RollResponse, tags=["掷骰"])
async def roll_get(
    q: str = Query(default="", description="查询文本"),
    resolver: Resolver = Depends(get_resolver),
):
    """GET 方式掷骰"""
    return await roll(RollRequestBody(query=q), resolver)


@app.get("/help", tags=["系统"])
async def help_text():
    """使用说明"""
    return {"help": render.render_help_text(get_settings().dice)}


# ============================================
# 启动函数
# ============================================

def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """
    启动 API 服务器，未指定的参数取自 config.yaml 的 api_server 节
    """
    import uvicorn

    api_config = get_settings().api_server
    host = host or api_config.host
    port = port or api_config.port
    reload = api_config.reload if reload is None else reload

    logger.info(f"启动 API 服务器: http://{host}:{port}")

    uvicorn.run(
        "dicemaster.interfaces.api_server:app",
        host=host,
        port=port,
        reload=reload
    )
