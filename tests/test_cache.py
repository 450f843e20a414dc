from cache import CacheKeys, CacheTTL, ExpiringCache


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set(CacheKeys.CATEGORIES, [{"id": 1}], ttl=CacheTTL.SHORT)

    clock.now += CacheTTL.SHORT
    assert cache.get(CacheKeys.CATEGORIES) == [{"id": 1}]

    clock.now += 1
    assert cache.get(CacheKeys.CATEGORIES) is None
    assert CacheKeys.CATEGORIES not in cache


def test_version_mismatch_is_a_miss() -> None:
    cache = ExpiringCache(version="1.0")
    cache.set(CacheKeys.DASHBOARD, {"daily_income_cents": 100})

    assert cache.get(CacheKeys.DASHBOARD, version="2.0") is None
    # The stale entry is dropped on read.
    assert cache.get(CacheKeys.DASHBOARD) is None


def test_returned_values_are_copies() -> None:
    cache = ExpiringCache()
    value = {"categories": [1, 2]}
    cache.set(CacheKeys.DASHBOARD, value)

    value["categories"].append(3)
    fetched = cache.get(CacheKeys.DASHBOARD)
    fetched["categories"].append(4)

    assert cache.get(CacheKeys.DASHBOARD) == {"categories": [1, 2]}


def test_unserializable_values_are_swallowed() -> None:
    cache = ExpiringCache()
    cache.set(CacheKeys.INCOME, {"when": object()})
    assert cache.get(CacheKeys.INCOME) is None


def test_clear_all_only_touches_app_keys() -> None:
    cache = ExpiringCache()
    cache.set(CacheKeys.DEBTS, [])
    cache.set(CacheKeys.SAVINGS_GOALS, [])
    cache.set("other_app_key", "keep")

    cache.clear_all()

    assert cache.get(CacheKeys.DEBTS) is None
    assert cache.get(CacheKeys.SAVINGS_GOALS) is None
    assert cache.get("other_app_key") == "keep"


def test_prune_removes_only_stale_entries() -> None:
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set("short", 1, ttl=10)
    cache.set("long", 2, ttl=CacheTTL.VERY_LONG)

    clock.now += 11
    assert cache.prune() == 1
    assert "short" not in cache
    assert cache.get("long") == 2


def test_membership_ignores_stale_entries() -> None:
    clock = FakeClock()
    cache = ExpiringCache(clock=clock, version="1.0")
    cache.set(CacheKeys.INCOME, {"amount_cents": 100}, ttl=10)
    cache.set(CacheKeys.DEBTS, [], version="0.9")

    assert CacheKeys.INCOME in cache
    assert CacheKeys.DEBTS not in cache

    clock.now += 11
    assert CacheKeys.INCOME not in cache
