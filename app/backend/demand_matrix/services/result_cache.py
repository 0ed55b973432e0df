"""Bounded cache for filter stage results."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from demand_matrix.models.matrix import DemandMatrix

logger = logging.getLogger(__name__)

# (strategy name, matrix fingerprint, selection key)
CacheKey = tuple[str, str, str]


@dataclass(frozen=True, slots=True)
class CacheStats:
    size: int
    max_entries: int
    hits: int
    misses: int
    evictions: int

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.lookups == 0:
            return 0.0
        return self.hits / self.lookups


def matrix_fingerprint(matrix: DemandMatrix) -> str:
    """Content digest of a matrix, stable across equal matrices.

    Every field a strategy can copy into its output is part of the digest.
    ``repr`` keeps value types apart, so ``123.0`` and ``"123.0"`` differ.
    """

    digest = hashlib.blake2b(digest_size=16)
    digest.update(repr(matrix.months).encode())
    for cell in matrix.data_points:
        digest.update(repr(cell).encode())
    return f"{matrix.cell_count}:{digest.hexdigest()}"


class FilterResultCache:
    """LRU cache with per-entry expiry.

    Safe for use from several threads; concurrent writers of the same key
    resolve to the last write.
    """

    def __init__(
        self,
        *,
        max_entries: int = 1000,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1.")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[CacheKey, tuple[float, DemandMatrix]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: CacheKey) -> DemandMatrix | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            stored_at, value = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: CacheKey, value: DemandMatrix) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted filter cache entry for %s", evicted[0])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
        logger.info("Filter result cache cleared")

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_entries=self.max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
