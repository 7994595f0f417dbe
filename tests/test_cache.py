import asyncio

import pytest

from grandcentral_server.cache import QueryCache
from grandcentral_server.errors import StaleResponseError


async def test_fetch_caches_until_tag_invalidated():
    cache = QueryCache()
    calls = []

    async def fetcher():
        calls.append(1)
        return len(calls)

    assert await cache.fetch("getCartList", {"date": "2024-06-10"}, ["Cart"], fetcher) == 1
    assert await cache.fetch("getCartList", {"date": "2024-06-10"}, ["Cart"], fetcher) == 1
    assert cache.invalidate_tags("Allowance") == 0
    assert cache.invalidate_tags("Cart", "Allowance") == 1
    assert await cache.fetch("getCartList", {"date": "2024-06-10"}, ["Cart"], fetcher) == 2


async def test_force_skips_cache():
    cache = QueryCache()
    cache.set("products", None, ["old"], ["Home"])

    async def fetcher():
        return ["new"]

    assert await cache.fetch("products", None, ["Home"], fetcher) == ["old"]
    assert await cache.fetch("products", None, ["Home"], fetcher, force=True) == ["new"]


async def test_keys_depend_on_arguments():
    assert QueryCache.make_key("x", {"a": 1, "b": 2}) == QueryCache.make_key("x", {"b": 2, "a": 1})
    assert QueryCache.make_key("x", {"a": 1}) != QueryCache.make_key("x", {"a": 2})


async def test_superseded_fetch_is_discarded():
    cache = QueryCache()
    release_first = asyncio.Event()

    async def slow():
        await release_first.wait()
        return "2024-06-10"

    async def fast():
        return "2024-06-11"

    first = asyncio.create_task(cache.fetch("getCartList", {"date": "2024-06-10"}, ["Cart"], slow, slot="cart"))
    await asyncio.sleep(0)
    assert await cache.fetch("getCartList", {"date": "2024-06-11"}, ["Cart"], fast, slot="cart") == "2024-06-11"

    release_first.set()
    with pytest.raises(StaleResponseError):
        await first
    assert cache.get("getCartList", {"date": "2024-06-10"}) is None
