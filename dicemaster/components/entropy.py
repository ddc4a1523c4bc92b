"""
熵源与熵缓存

以太坊最新区块哈希作为外部熵，每隔 refresh_interval 秒最多刷新一次；
每次取种时与本地计数器、微秒时间戳混合，保证两次刷新之间的每次掷骰种子不同。
熵状态只通过 EntropyCache 的方法访问，所有读写都在同一把锁内完成。
"""
import asyncio
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import aiohttp

from ..core import get_logger, get_settings
from ..core.config import EntropyConfig
from ..core.events import BlockInfo, EntropyState, SeedMaterial
from ..core.exceptions import EntropySourceUnavailable

logger = get_logger(__name__)


class EntropySource(ABC):
    """外部熵源抽象基类"""

    @abstractmethod
    async def fetch_latest(self) -> BlockInfo:
        """获取最新区块，失败时抛出 EntropySourceUnavailable"""
        pass


class EthBlockSource(EntropySource):
    """通过以太坊 JSON-RPC 获取最新区块哈希"""

    def __init__(self, rpc_url: Optional[str], timeout: float = 10.0):
        self.rpc_url = rpc_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @staticmethod
    def _build_request_body() -> dict:
        return {
            "jsonrpc": "2.0",
            "method": "eth_getBlockByNumber",
            "params": ["latest", True],
            "id": 1,
        }

    async def fetch_latest(self) -> BlockInfo:
        if not self.rpc_url:
            raise EntropySourceUnavailable("ETH RPC 地址未配置")

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.rpc_url, json=self._build_request_body()) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise EntropySourceUnavailable(f"RPC 返回错误 {response.status}: {error_text[:200]}")
                    payload = await response.json(content_type=None)
        except EntropySourceUnavailable:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise EntropySourceUnavailable(f"获取区块失败: {e!r}", cause=e) from e

        return self._parse_block(payload)

    @staticmethod
    def _parse_block(payload) -> BlockInfo:
        result = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise EntropySourceUnavailable("响应中缺少 result")

        block_hash = result.get("hash")
        height = result.get("number")
        if not isinstance(block_hash, str) or not isinstance(height, str):
            raise EntropySourceUnavailable("响应中缺少 hash 或 number")

        return BlockInfo(hash=block_hash, height=height)


class EntropyCache:
    """
    熵缓存
    Fresh: now - last_refreshed_at < refresh_interval
    Stale: 否则，取种前先尝试刷新；刷新失败不影响取种，继续使用旧哈希

    内部的 asyncio.Lock 一旦发生争用就绑定到当时的事件循环，
    因此 get_instance() 返回的进程级实例只能在同一个事件循环中使用
    （bot / api / cli 各自只运行一个循环）。需要跨循环时请自行构造新实例。
    """

    _instance: Optional["EntropyCache"] = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        source: EntropySource,
        refresh_interval: float = 12.0,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._lock = asyncio.Lock()
        self._raw_hash = ""
        self._last_refreshed_at = 0.0
        self._draws_since_refresh = 0

    @classmethod
    def from_config(cls, config: EntropyConfig) -> "EntropyCache":
        source = EthBlockSource(config.rpc_url, timeout=config.request_timeout)
        return cls(source, refresh_interval=config.refresh_interval)

    @classmethod
    def get_instance(cls) -> "EntropyCache":
        """进程内唯一的熵缓存，只在一个事件循环内使用"""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls.from_config(get_settings().entropy)
            return cls._instance

    def _is_stale(self, now: float) -> bool:
        return now - self._last_refreshed_at >= self.refresh_interval

    async def _refresh_locked(self) -> bool:
        """调用方必须持有 self._lock"""
        try:
            block = await self.source.fetch_latest()
        except EntropySourceUnavailable as e:
            logger.error(f"刷新区块哈希失败，继续使用旧哈希: {e}")
            return False

        self._raw_hash = block.hash
        self._draws_since_refresh = 0
        self._last_refreshed_at = self._clock()
        logger.info(f"区块哈希已更新: height={block.height}, hash={block.hash}")
        return True

    async def current_seed_material(self) -> SeedMaterial:
        """
        取一次种子原料
        过期时先刷新，然后记录 (哈希, 使用序号, 微秒时间) 并递增计数器
        """
        async with self._lock:
            if self._is_stale(self._clock()):
                await self._refresh_locked()

            material = SeedMaterial(
                hash_token=self._raw_hash,
                use_index=self._draws_since_refresh,
                clock_us=int(self._clock() * 1_000_000),
            )
            self._draws_since_refresh += 1
            return material

    async def refresh(self) -> bool:
        """强制刷新，返回是否成功"""
        async with self._lock:
            return await self._refresh_locked()

    async def snapshot(self) -> EntropyState:
        async with self._lock:
            return EntropyState(
                raw_hash=self._raw_hash,
                last_refreshed_at=self._last_refreshed_at,
                draws_since_refresh=self._draws_since_refresh,
            )


def get_entropy_cache() -> EntropyCache:
    return EntropyCache.get_instance()
