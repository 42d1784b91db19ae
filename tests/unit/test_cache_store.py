import pytest

from community_push.client.cache_store import CacheEntry, CacheStorage


def entry(key, payload, generation="v1"):
    return CacheEntry(key=key, payload=payload, content_type="text/css", cache_generation=generation)


@pytest.mark.asyncio
async def test_open_returns_same_named_cache():
    storage = CacheStorage()
    assert await storage.open("site-v1") is await storage.open("site-v1")


@pytest.mark.asyncio
async def test_last_write_wins():
    storage = CacheStorage()
    cache = await storage.open("site-v1")

    await cache.put(entry("https://a.example/site.css", b"first"))
    await cache.put(entry("https://a.example/site.css", b"second"))

    assert (await cache.match("https://a.example/site.css")).payload == b"second"
    assert await cache.keys() == ["https://a.example/site.css"]


@pytest.mark.asyncio
async def test_delete_cache_removes_all_entries():
    storage = CacheStorage()
    cache = await storage.open("site-v1")
    await cache.put(entry("https://a.example/site.css", b"css"))

    assert await storage.delete("site-v1") is True
    assert await storage.delete("site-v1") is False
    assert await storage.match("https://a.example/site.css") is None
    assert await storage.keys() == []


@pytest.mark.asyncio
async def test_match_searches_every_cache():
    storage = CacheStorage()
    await (await storage.open("site-v1")).put(entry("https://a.example/a.css", b"a"))
    await (await storage.open("site-runtime-v1")).put(entry("https://a.example/b.css", b"b"))

    assert (await storage.match("https://a.example/b.css")).payload == b"b"
    assert storage.stats() == {"site-v1": 1, "site-runtime-v1": 1}
