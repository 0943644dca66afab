from __future__ import annotations

import threading
import time

import pytest

from lmia.cache import DatasetCache
from lmia.exceptions import DataUnavailable
from lmia.models import Dataset


class CountingLoader:
    def __init__(self, delay: float = 0.0, fail_times: int = 0):
        self.calls = []
        self.delay = delay
        self.fail_times = fail_times
        self._lock = threading.Lock()

    def __call__(self, year, quarter):
        with self._lock:
            self.calls.append((year, quarter))
            attempt = len(self.calls)
        if self.delay:
            time.sleep(self.delay)
        if attempt <= self.fail_times:
            raise OSError("workbook locked")
        return Dataset(year=year, quarter=quarter)


@pytest.fixture
def make_cache():
    caches = []

    def _make(loader, **kwargs):
        cache = DatasetCache(loader, **kwargs)
        caches.append(cache)
        return cache

    yield _make
    for cache in caches:
        cache.shutdown()


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_second_get_is_served_from_cache(make_cache):
    loader = CountingLoader()
    cache = make_cache(loader)
    first = cache.get(2025, "Q1")
    second = cache.get(2025, "Q1")
    assert first is second
    assert loader.calls == [(2025, "Q1")]
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["cached_periods"] == ["2025-Q1"]


def test_least_recently_used_period_is_evicted(make_cache):
    cache = make_cache(CountingLoader(), maxsize=2)
    cache.get(2024, "Q1")
    cache.get(2024, "Q2")
    cache.get(2024, "Q1")
    cache.get(2024, "Q3")
    assert (2024, "Q1") in cache
    assert (2024, "Q3") in cache
    assert (2024, "Q2") not in cache


def test_concurrent_requests_share_one_load(make_cache):
    loader = CountingLoader(delay=0.2)
    cache = make_cache(loader)
    results = []
    barrier = threading.Barrier(5)

    def worker():
        barrier.wait()
        results.append(cache.get(2025, "Q1"))

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert loader.calls == [(2025, "Q1")]
    assert len(results) == 5
    assert all(r is results[0] for r in results)


def test_slow_load_raises_data_unavailable_then_lands_in_cache(make_cache):
    loader = CountingLoader(delay=0.3)
    cache = make_cache(loader, load_timeout=0.05)
    with pytest.raises(DataUnavailable) as excinfo:
        cache.get(2025, "Q2")
    assert excinfo.value.reason == "load timed out"
    assert _wait_until(lambda: (2025, "Q2") in cache)
    assert cache.get(2025, "Q2").quarter == "Q2"
    assert len(loader.calls) == 1


def test_failed_load_is_not_cached(make_cache):
    loader = CountingLoader(fail_times=1)
    cache = make_cache(loader)
    with pytest.raises(OSError):
        cache.get(2025, "Q1")
    assert (2025, "Q1") not in cache
    assert cache.get(2025, "Q1").year == 2025
    assert len(loader.calls) == 2


def test_data_unavailable_propagates(make_cache):
    def loader(year, quarter):
        raise DataUnavailable(year, quarter)

    cache = make_cache(loader)
    with pytest.raises(DataUnavailable):
        cache.get(1999, "Q1")
    assert cache.stats()["cached_periods"] == []


def test_clear_empties_entries_and_counters(make_cache):
    cache = make_cache(CountingLoader())
    cache.get(2025, "Q1")
    cache.get(2025, "Q1")
    cache.clear()
    stats = cache.stats()
    assert stats["cached_periods"] == []
    assert stats["hits"] == 0
    assert stats["misses"] == 0


def test_stats_totals(make_cache, sample_dataset):
    cache = make_cache(lambda year, quarter: sample_dataset, maxsize=3)
    cache.get(2025, "Q1")
    stats = cache.stats()
    assert stats["total_employers"] == len(sample_dataset.employers)
    assert stats["total_approvals"] == len(sample_dataset.approvals)
    assert stats["max_size"] == 3
    assert stats["loading_periods"] == []


def test_maxsize_must_be_positive():
    with pytest.raises(ValueError):
        DatasetCache(CountingLoader(), maxsize=0)


def test_clear_discards_load_in_flight(make_cache):
    release = threading.Event()
    calls = []

    def gated_loader(year, quarter):
        calls.append((year, quarter))
        release.wait(timeout=5)
        return Dataset(year=year, quarter=quarter)

    cache = make_cache(gated_loader, load_timeout=5.0)
    results = []
    waiter = threading.Thread(target=lambda: results.append(cache.get(2025, "Q1")))
    waiter.start()
    assert _wait_until(lambda: cache.stats()["loading_periods"] == ["2025-Q1"])

    cache.clear()
    release.set()
    waiter.join()

    assert results[0].quarter == "Q1"
    assert (2025, "Q1") not in cache
    assert cache.stats()["loading_periods"] == []

    cache.get(2025, "Q1")
    assert len(calls) == 2
    assert (2025, "Q1") in cache
