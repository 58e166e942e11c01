from features.time_cache import TimedCache


def test_entry_visible_until_ttl(clock):
    cache = TimedCache(60, clock=clock)
    cache.set("url", "#EXTM3U")

    clock.advance(59)
    assert cache.get("url") == "#EXTM3U"

    clock.advance(1)
    assert cache.get("url") is None


def test_expired_entry_is_evicted_on_access(clock):
    cache = TimedCache(10, clock=clock)
    cache.set("a", 1)
    clock.advance(11)

    assert len(cache) == 1
    assert "a" not in cache
    assert len(cache) == 0


def test_reinsert_restarts_ttl(clock):
    cache = TimedCache(10, clock=clock)
    cache.set("a", 1)
    clock.advance(8)
    cache.set("a", 2)
    clock.advance(8)

    assert cache.get("a") == 2


def test_missing_key_returns_default():
    cache = TimedCache(10)
    assert cache.get("nope", "fallback") == "fallback"


def test_clear_and_delete(clock):
    cache = TimedCache(10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.delete("a")
    assert "a" not in cache and "b" in cache

    cache.clear()
    assert len(cache) == 0
