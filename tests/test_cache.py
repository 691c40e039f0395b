"""Tests for the device info cache."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from zkteco_sync.core.cache import TTLCache, device_info_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_get_or_compute_memoizes_within_ttl(clock):
    cache = TTLCache(clock=clock)
    compute = MagicMock(return_value={"users": 3})

    assert cache.get_or_compute("k", 60, compute) == {"users": 3}
    clock.now += 59
    assert cache.get_or_compute("k", 60, compute) == {"users": 3}
    compute.assert_called_once()


def test_entry_expires_after_ttl(clock):
    cache = TTLCache(clock=clock)
    compute = MagicMock(side_effect=["first", "second"])

    cache.get_or_compute("k", 60, compute)
    clock.now += 60
    assert cache.get_or_compute("k", 60, compute) == "second"
    assert compute.call_count == 2


def test_failures_are_not_cached(clock):
    cache = TTLCache(clock=clock)
    compute = MagicMock(side_effect=[ConnectionError("down"), "ok"])

    with pytest.raises(ConnectionError):
        cache.get_or_compute("k", 60, compute)
    assert cache.get_or_compute("k", 60, compute) == "ok"


def test_invalidate(clock):
    cache = TTLCache(clock=clock)
    cache.set("a", 1, 60)
    cache.set("b", 2, 60)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.invalidate()
    assert cache.get("b") is None


def test_get_status_reports_remaining_ttl(clock):
    cache = TTLCache(clock=clock)
    cache.set(device_info_key("10.0.0.1"), "info", 100)
    clock.now += 40
    status = cache.get_status()
    assert status == {"device_info:10.0.0.1": {"age_seconds": 40.0, "expires_in_seconds": 60.0}}
