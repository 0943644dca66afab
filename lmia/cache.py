"""
Bounded, load-once cache of per-period datasets.

Keyed by (year, quarter). Concurrent requests for a missing period share one
in-flight load. Callers wait at most ``load_timeout`` seconds; a load that
overruns keeps going in the background and is stored when it finishes.
Failed loads are not cached, and clear() also forgets loads still in flight.
"""
from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Dict, Optional, Tuple

from lmia.exceptions import DataUnavailable
from lmia.models import Dataset


logger = logging.getLogger(__name__)

PeriodKey = Tuple[int, str]
Loader = Callable[[int, str], Dataset]


class DatasetCache:
    def __init__(
        self,
        loader: Loader,
        *,
        maxsize: int = 8,
        load_timeout: Optional[float] = 30.0,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._loader = loader
        self._maxsize = maxsize
        self._load_timeout = load_timeout
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="lmia-load")
        self._entries: "OrderedDict[PeriodKey, Dataset]" = OrderedDict()
        self._pending: Dict[PeriodKey, Future] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, year: int, quarter: str) -> Dataset:
        key = (year, quarter)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._entries.move_to_end(key)
                self._hits += 1
                return cached
            self._misses += 1
            future = self._pending.get(key)
            if future is None:
                future = self._executor.submit(self._loader, year, quarter)
                self._pending[key] = future
                future.add_done_callback(lambda f, k=key: self._store(k, f))

        try:
            dataset = future.result(timeout=self._load_timeout)
        except FutureTimeout:
            logger.warning("Loading %s %s exceeded %.1fs", year, quarter, self._load_timeout)
            raise DataUnavailable(year, quarter, "load timed out") from None
        self._store(key, future)
        return dataset

    def _store(self, key: PeriodKey, future: Future) -> None:
        """Cache a finished load once; loads dropped by clear() are discarded."""
        with self._lock:
            if self._pending.get(key) is not future:
                return
            del self._pending[key]
            if future.cancelled() or future.exception() is not None:
                return
            self._entries[key] = future.result()
            self._entries.move_to_end(key)
            while len(self._entries) > self._maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("Evicted dataset %s %s from cache", *evicted)

    def __contains__(self, key: PeriodKey) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._pending.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Dataset cache cleared")

    def stats(self) -> Dict[str, object]:
        with self._lock:
            return {
                "cached_periods": [f"{year}-{quarter}" for year, quarter in self._entries],
                "loading_periods": [f"{year}-{quarter}" for year, quarter in self._pending],
                "total_employers": sum(len(d.employers) for d in self._entries.values()),
                "total_approvals": sum(len(d.approvals) for d in self._entries.values()),
                "max_size": self._maxsize,
                "hits": self._hits,
                "misses": self._misses,
            }

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
