"""
Components 模块
核心组件：表达式解析、熵缓存、掷骰引擎、查询处理
"""
from .notation import parse_notation, check_limits, default_spec
from .entropy import EntropySource, EthBlockSource, EntropyCache, get_entropy_cache
from .dice import RollEngine
from .query import parse_query, normalize_advantage
from .resolver import Resolver

__all__ = [
    "parse_notation",
    "check_limits",
    "default_spec",
    "EntropySource",
    "EthBlockSource",
    "EntropyCache",
    "get_entropy_cache",
    "RollEngine",
    "parse_query",
    "normalize_advantage",
    "Resolver",
]
