import pytest

from conftest import FakeClock
from tripcompare.errors import QuotaExceeded
from tripcompare.services.quota import SearchQuota


async def test_limit_per_key_and_window():
    clock = FakeClock(0.0)
    quota = SearchQuota(limit=2, window_seconds=60, clock=clock)

    await quota.check("u1")
    await quota.check("u1")
    await quota.check("u2")
    with pytest.raises(QuotaExceeded) as exc:
        await quota.check("u1")
    assert exc.value.retry_after == 60

    clock.advance(60)
    await quota.check("u1")


async def test_anonymous_callers_share_a_bucket():
    quota = SearchQuota(limit=1)
    await quota.check(None)
    with pytest.raises(QuotaExceeded):
        await quota.check(None)


async def test_zero_limit_disables_quota():
    quota = SearchQuota(limit=0)
    for _ in range(100):
        await quota.check("u1")


async def test_ended_windows_are_dropped():
    clock = FakeClock(0.0)
    quota = SearchQuota(limit=5, window_seconds=60, clock=clock)
    for i in range(100):
        await quota.check(f"user-{i}")
    assert quota.tracked_keys == 100

    clock.advance(60)
    await quota.check("late")
    assert quota.tracked_keys == 1


async def test_prune_without_traffic():
    clock = FakeClock(0.0)
    quota = SearchQuota(limit=5, window_seconds=60, clock=clock)
    await quota.check("u1")
    clock.advance(30)
    await quota.check("u2")

    clock.advance(30)
    assert await quota.prune() == 1
    assert quota.tracked_keys == 1
    assert await quota.prune() == 0
