"""Tests for the TTL result cache."""

import pytest

from conftest import FakeClock, make_quote
from tripcompare.schemas.comparison import ComparisonResult
from tripcompare.services.cache_service import ResultCache


@pytest.fixture
def clock():
    return FakeClock(1000.0)


@pytest.fixture
def cache(clock):
    return ResultCache(provider_ttl=60, aggregate_ttl=120, clock=clock)


async def test_entry_served_before_ttl_and_missed_at_ttl(cache, clock):
    await cache.put("k", {"v": 1}, ttl=30)

    clock.advance(29.9)
    assert await cache.get("k") == {"v": 1}

    clock.advance(0.1)
    assert await cache.get("k") is None
    assert await cache.size() == 0


async def test_missing_key(cache):
    assert await cache.get("nope") is None


async def test_non_positive_ttl_is_not_stored(cache):
    assert await cache.put("k", 1, ttl=0) is False
    assert await cache.get("k") is None


async def test_reads_return_copies(cache):
    await cache.put("k", {"items": [1, 2]}, ttl=10)
    first = await cache.get("k")
    first["items"].append(3)
    assert await cache.get("k") == {"items": [1, 2]}


async def test_invalidate(cache):
    await cache.put("k", 1, ttl=10)
    assert await cache.invalidate("k") is True
    assert await cache.invalidate("k") is False
    assert await cache.get("k") is None


async def test_purge_expired(cache, clock):
    await cache.put("short", 1, ttl=5)
    await cache.put("long", 2, ttl=50)
    clock.advance(10)
    assert await cache.purge_expired() == 1
    assert await cache.size() == 1
    assert await cache.get("long") == 2


def test_provider_ttl_must_not_exceed_aggregate():
    with pytest.raises(ValueError):
        ResultCache(provider_ttl=600, aggregate_ttl=300)


async def test_provider_quotes_use_provider_ttl(cache, clock):
    quotes = [make_quote("a", 100), make_quote("b", 80)]
    await cache.set_quotes("p1", "hash", quotes)

    cached = await cache.get_quotes("p1", "hash")
    assert [q.id for q in cached] == ["a", "b"]
    assert cached[0] == quotes[0]

    clock.advance(60)
    assert await cache.get_quotes("p1", "hash") is None


async def test_comparison_uses_aggregate_ttl(cache, clock):
    result = ComparisonResult(request_id="r1", status="completed", results=[make_quote("a", 100)], total_results=1)
    await cache.set_comparison("req", result)

    clock.advance(119)
    assert (await cache.get_comparison("req")).request_id == "r1"
    clock.advance(1)
    assert await cache.get_comparison("req") is None


async def test_quote_index(cache, clock):
    quote = make_quote("q1", 100)
    await cache.set_quote(quote, ttl=15)
    assert await cache.get_quote("q1") == quote
    clock.advance(15)
    assert await cache.get_quote("q1") is None


async def test_size_counts_only_live_entries(cache, clock):
    await cache.put("short", 1, ttl=10)
    await cache.put("long", 2, ttl=100)
    assert await cache.size() == 2

    clock.advance(10)
    assert await cache.size() == 1
    # Size does not evict
    assert await cache.purge_expired() == 1
