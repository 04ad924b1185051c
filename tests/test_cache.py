from clinicops.cache import CacheService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    c = CacheService(clock=clock)
    c.set("k", {"v": 1}, ttl=10)

    assert c.get("k") == {"v": 1}
    clock.now += 9
    assert c.get("k") == {"v": 1}
    clock.now += 2
    assert c.get("k") is None


def test_wrap_computes_once_until_deleted():
    c = CacheService()
    calls = []

    def load():
        calls.append(1)
        return ["a"]

    assert c.wrap("cats", load) == ["a"]
    assert c.wrap("cats", load) == ["a"]
    assert len(calls) == 1

    c.delete("cats")
    c.wrap("cats", load)
    assert len(calls) == 2


def test_invalidate_pattern_only_removes_prefix():
    c = CacheService()
    c.set("dashboard_summary:1", 1)
    c.set("dashboard_summary:2", 2)
    c.set("incident_types", 3)

    assert c.invalidate_pattern("dashboard_summary") == 2
    assert c.get("incident_types") == 3


def test_full_cache_drops_expired_entries_first():
    clock = FakeClock()
    c = CacheService(max_entries=2, clock=clock)
    c.set("short", 1, ttl=5)
    c.set("long", 2, ttl=500)
    clock.now += 6
    c.set("new", 3, ttl=50)

    assert c.get("short") is None
    assert c.get("long") == 2
    assert c.get("new") == 3


def test_full_cache_stays_within_max_entries():
    c = CacheService(max_entries=2)
    for n in range(5):
        c.set(f"k{n}", n)

    assert c.max_entries == 2
    assert sum(c.get(f"k{n}") is not None for n in range(5)) == 2
    assert c.get("k4") == 4
