"""
tests/test_services/test_response_cache.py — In-process TTL cache and result envelope.
"""

from __future__ import annotations

import pytest

from nrega_api.responses import ServiceResult
from nrega_api.utils.cache import TTLCache, cache_key


class Ticker:
    def __init__(self) -> None:
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


class TestTTLCache:
    @pytest.mark.parametrize("ttl", [1800, 3600])
    def test_hit_before_expiry_miss_after(self, ttl):
        ticker = Ticker()
        cache = TTLCache(clock=ticker)
        cache.set("k", [1, 2], ttl)

        ticker.t += ttl - 0.001
        assert cache.get("k") == [1, 2]
        ticker.t += 0.002
        assert cache.get("k") is None

    def test_default_ttl(self):
        ticker = Ticker()
        cache = TTLCache(default_ttl=60, clock=ticker)
        cache.set("k", "v")
        ticker.t += 59
        assert cache.get("k") == "v"
        ticker.t += 1
        assert cache.get("k") is None

    def test_evict_expired(self):
        ticker = Ticker()
        cache = TTLCache(clock=ticker)
        cache.set("short", 1, 10)
        cache.set("long", 2, 100)
        ticker.t += 50

        assert cache.evict_expired() == 1
        assert len(cache) == 1

    def test_size_bound_evicts_least_recently_used(self):
        ticker = Ticker()
        cache = TTLCache(max_entries=2, clock=ticker)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_size_bound_prefers_expired_entries(self):
        ticker = Ticker()
        cache = TTLCache(max_entries=2, clock=ticker)
        cache.set("fresh", 1, 100)
        cache.set("stale", 2, 10)
        ticker.t += 20
        cache.set("new", 3, 100)

        assert cache.get("fresh") == 1
        assert cache.get("new") == 3
        assert len(cache) == 2

    def test_rejects_empty_bound(self):
        with pytest.raises(ValueError):
            TTLCache(max_entries=0)

    def test_delete_and_clear(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0


def test_cache_key_normalizes_case_and_whitespace():
    assert cache_key("districts", " Uttar Pradesh ") == cache_key("districts", "uttar pradesh")
    assert cache_key("summary", None, "2024-2025") == "summary::2024-2025"


class TestServiceResult:
    def test_ok_envelope(self):
        body = ServiceResult.ok([{"a": 1}], source="upstream").to_dict()
        assert body == {
            "success": True,
            "cached": False,
            "data": [{"a": 1}],
            "meta": {"total_count": 1, "source": "upstream"},
        }

    def test_not_found_is_success(self):
        result = ServiceResult.ok(None)
        assert result.success
        assert result.to_dict()["data"] is None

    def test_fail_envelope(self):
        result = ServiceResult.fail("upstream_unavailable", "timed out")
        assert result.reason == "upstream_unavailable"
        assert result.to_dict() == {
            "success": False,
            "error": {"code": "upstream_unavailable", "message": "timed out"},
        }
