from __future__ import annotations

from decimal import Decimal

from reliefops.services import BalanceCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = BalanceCache(ttl_seconds=10, clock=clock)
    cache.set(1, Decimal("500"))

    clock.now = 9.9
    assert cache.get(1) == Decimal("500")
    clock.now = 10
    assert cache.get(1) is None
    assert len(cache) == 0


def test_invalidate_affects_only_its_key():
    cache = BalanceCache()
    cache.set(1, Decimal("1"))
    cache.set(2, Decimal("2"))

    cache.invalidate(1)
    cache.invalidate(99)

    assert 1 not in cache
    assert cache.get(2) == Decimal("2")

    cache.clear()
    assert len(cache) == 0
