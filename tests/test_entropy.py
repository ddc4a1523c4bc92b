"""
测试熵缓存的刷新策略、计数器与失败处理
"""
import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from dicemaster.core.events import SeedMaterial
from dicemaster.core.exceptions import EntropySourceUnavailable
from dicemaster.components.entropy import EntropyCache, EthBlockSource


def test_first_request_refreshes(cache, source):
    material = asyncio.run(cache.current_seed_material())
    state = asyncio.run(cache.snapshot())

    assert source.calls == 1
    assert material.hash_token == "0xaaa"
    assert material.use_index == 0
    assert state.raw_hash == "0xaaa"
    assert state.draws_since_refresh == 1


def test_requests_within_interval_get_distinct_seeds(cache, source, clock):
    async def draw_twice():
        first = await cache.current_seed_material()
        clock.advance(5)
        second = await cache.current_seed_material()
        return first, second

    first, second = asyncio.run(draw_twice())

    assert source.calls == 1
    assert first.hash_token == second.hash_token
    assert (first.use_index, second.use_index) == (0, 1)
    assert first.seed != second.seed


def test_same_clock_still_distinct_seeds(cache):
    async def draw_twice():
        return await cache.current_seed_material(), await cache.current_seed_material()

    first, second = asyncio.run(draw_twice())

    assert first.clock_us == second.clock_us
    assert first.seed != second.seed


def test_stale_cache_refreshes_and_resets_counter(cache, source, clock):
    async def scenario():
        await cache.current_seed_material()
        await cache.current_seed_material()
        clock.advance(12)
        return await cache.current_seed_material()

    material = asyncio.run(scenario())
    state = asyncio.run(cache.snapshot())

    assert source.calls == 2
    assert material.hash_token == "0xbbb"
    assert material.use_index == 0
    assert state.draws_since_refresh == 1
    assert state.last_refreshed_at == clock.now


def test_failed_refresh_keeps_previous_state(cache, source, clock):
    asyncio.run(cache.current_seed_material())
    refreshed_at = clock.now

    source.fail = True
    clock.advance(13)
    material = asyncio.run(cache.current_seed_material())
    state = asyncio.run(cache.snapshot())

    assert source.calls == 2
    assert material.hash_token == "0xaaa"
    assert material.use_index == 1
    assert state.raw_hash == "0xaaa"
    assert state.last_refreshed_at == refreshed_at

    # 仍是 Stale，下次请求继续尝试刷新
    asyncio.run(cache.current_seed_material())
    assert source.calls == 3


def test_unavailable_source_from_start(make_cache):
    cache, _ = make_cache(fail=True)
    material = asyncio.run(cache.current_seed_material())

    assert material.hash_token == ""
    assert material.use_index == 0
    assert asyncio.run(cache.snapshot()).last_refreshed_at == 0.0


def test_forced_refresh(cache, source):
    assert asyncio.run(cache.refresh()) is True
    assert asyncio.run(cache.snapshot()).raw_hash == "0xaaa"

    source.fail = True
    assert asyncio.run(cache.refresh()) is False
    assert asyncio.run(cache.snapshot()).raw_hash == "0xaaa"


def test_concurrent_requests_are_serialized(make_cache):
    cache, source = make_cache(delay=0.01)

    async def draw_many():
        return await asyncio.gather(*(cache.current_seed_material() for _ in range(50)))

    materials = asyncio.run(draw_many())

    assert source.calls == 1
    assert sorted(m.use_index for m in materials) == list(range(50))
    assert len({m.seed for m in materials}) == 50


def test_seed_is_stable_for_same_material():
    a = SeedMaterial(hash_token="0xabc", use_index=3, clock_us=1_700_000_000_000_000)
    b = SeedMaterial(hash_token="0xabc", use_index=3, clock_us=1_700_000_000_000_000)
    c = SeedMaterial(hash_token="0xabd", use_index=3, clock_us=1_700_000_000_000_000)

    assert a.seed == b.seed
    assert a.seed != c.seed
    assert 0 <= a.seed < 2 ** 64


def test_parse_block():
    block = EthBlockSource._parse_block({"result": {"hash": "0xdead", "number": "0x10"}})
    assert (block.hash, block.height) == ("0xdead", "0x10")


@pytest.mark.parametrize("payload", [
    {},
    {"result": None},
    {"result": {"hash": "0xdead"}},
    {"result": {"number": "0x10"}},
    {"error": {"code": -32000, "message": "rate limited"}},
    [],
])
def test_parse_block_rejects_malformed(payload):
    with pytest.raises(EntropySourceUnavailable):
        EthBlockSource._parse_block(payload)


def test_missing_rpc_url():
    with pytest.raises(EntropySourceUnavailable):
        asyncio.run(EthBlockSource(None).fetch_latest())


def test_request_body():
    body = EthBlockSource._build_request_body()
    assert body["method"] == "eth_getBlockByNumber"
    assert body["params"] == ["latest", True]


def test_get_instance_is_process_wide(monkeypatch):
    monkeypatch.setattr(EntropyCache, "_instance", None)

    first = EntropyCache.get_instance()
    assert EntropyCache.get_instance() is first
    assert isinstance(first.source, EthBlockSource)


# ---- 通过本地 aiohttp 服务测试 JSON-RPC 请求 ----

def fetch_from(handler, timeout=10.0):
    """启动只有一个 POST / 路由的本地服务，用 EthBlockSource 请求它"""
    async def scenario():
        app = web.Application()
        app.router.add_post("/", handler)
        async with TestServer(app) as server:
            source = EthBlockSource(str(server.make_url("/")), timeout=timeout)
            return await source.fetch_latest()

    return asyncio.run(scenario())


def test_fetch_latest_posts_json_rpc():
    received = []

    async def handler(request):
        received.append(await request.json())
        return web.json_response({"jsonrpc": "2.0", "id": 1, "result": {"hash": "0xfeed", "number": "0x2a"}})

    block = fetch_from(handler)

    assert (block.hash, block.height) == ("0xfeed", "0x2a")
    assert received == [EthBlockSource._build_request_body()]


def test_fetch_latest_http_error():
    async def handler(request):
        return web.Response(status=502, text="<html>Bad Gateway</html>", content_type="text/html")

    with pytest.raises(EntropySourceUnavailable) as exc_info:
        fetch_from(handler)
    assert "502" in str(exc_info.value)


def test_fetch_latest_non_json_body():
    async def handler(request):
        return web.Response(text="definitely not json", content_type="text/plain")

    with pytest.raises(EntropySourceUnavailable) as exc_info:
        fetch_from(handler)
    assert isinstance(exc_info.value.cause, ValueError)


def test_fetch_latest_rpc_error_object():
    async def handler(request):
        return web.json_response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "limit"}})

    with pytest.raises(EntropySourceUnavailable):
        fetch_from(handler)


def test_fetch_latest_timeout():
    async def handler(request):
        await asyncio.sleep(0.5)
        return web.json_response({"result": {"hash": "0xlate", "number": "0x1"}})

    with pytest.raises(EntropySourceUnavailable) as exc_info:
        fetch_from(handler, timeout=0.05)
    assert isinstance(exc_info.value.cause, asyncio.TimeoutError)
