"""
测试公共夹具：可控的熵源与时钟
"""
import asyncio
import sys
from pathlib import Path

import pytest

# 添加项目根目录到路径
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dicemaster.core.config import DiceConfig
from dicemaster.core.events import BlockInfo
from dicemaster.core.exceptions import EntropySourceUnavailable
from dicemaster.components.entropy import EntropyCache, EntropySource
from dicemaster.components.dice import RollEngine
from dicemaster.components.resolver import Resolver


class FakeSource(EntropySource):
    """按顺序返回预设哈希，fail=True 时模拟网络错误"""

    def __init__(self, hashes=None, fail=False, delay=0.0):
        self.hashes = list(hashes or ["0xaaa", "0xbbb", "0xccc"])
        self.fail = fail
        self.delay = delay
        self.calls = 0

    async def fetch_latest(self) -> BlockInfo:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise EntropySourceUnavailable("simulated network error")
        block_hash = self.hashes[min(self.calls, len(self.hashes)) - 1]
        return BlockInfo(hash=block_hash, height=hex(self.calls))


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(source, clock):
    return EntropyCache(source, refresh_interval=12.0, clock=clock)


@pytest.fixture
def dice_config():
    return DiceConfig()


@pytest.fixture
def engine(cache, dice_config):
    return RollEngine(cache=cache, dice_config=dice_config)


@pytest.fixture
def resolver(engine, dice_config):
    return Resolver(engine=engine, dice_config=dice_config)


@pytest.fixture
def make_cache(clock):
    """按参数构造 (熵缓存, 熵源)"""
    def _make(**source_kwargs):
        fake_source = FakeSource(**source_kwargs)
        return EntropyCache(fake_source, refresh_interval=12.0, clock=clock), fake_source
    return _make
