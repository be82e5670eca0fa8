"""In-process cache for finished keyword research results.

Maps (seed phrase, geography, language) to the ranked result list and the
time it was computed. Entries are fresh for a bounded window (24 hours by
default); stale entries read as absent and are purged opportunistically on
writes. Contents live in process memory only and do not survive restarts.

The cache is constructed explicitly and handed to the service that uses it,
with an injectable clock, so tests can supply a fresh instance and move
time forward without sleeping.
"""

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from kwresearch.core.logging import get_logger
from kwresearch.services.pipeline import EnrichedKeyword

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(hours=24)

CacheKey = tuple[str, str, str]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class CacheStats:
    """Statistics for cache operations."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    writes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total


@dataclass(frozen=True)
class CacheEntry:
    """A cached research result. Read-only once written."""

    key: CacheKey
    results: tuple[EnrichedKeyword, ...]
    created_at: datetime = field(default_factory=utc_now)

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.created_at <= ttl


class ResultCache:
    """Lock-guarded map of research results with a freshness window.

    Keys match exactly; callers own any normalization. Concurrent puts on
    the same key are last-writer-wins.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the result cache.

        Args:
            ttl: Freshness window for entries.
            clock: Returns the current time (timezone-aware).
        """
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

        logger.debug(
            "ResultCache initialized",
            extra={"ttl_seconds": ttl.total_seconds()},
        )

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: CacheKey) -> CacheEntry | None:
        """Return the entry for key if it is still fresh."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if not entry.is_fresh(now, self._ttl):
                self._stats.misses += 1
                self._stats.expired += 1
                return None
            self._stats.hits += 1

        logger.debug(
            "Result cache hit",
            extra={
                "seed": key[0][:100],
                "geography": key[1],
                "language": key[2],
                "age_seconds": round((now - entry.created_at).total_seconds(), 1),
            },
        )
        return entry

    def put(self, key: CacheKey, results: Sequence[EnrichedKeyword]) -> CacheEntry:
        """Store results for key, replacing any previous entry."""
        now = self._clock()
        entry = CacheEntry(key=key, results=tuple(results), created_at=now)
        with self._lock:
            self._entries[key] = entry
            self._stats.writes += 1
            purged = self._purge_expired_locked(now)

        logger.debug(
            "Result cache write",
            extra={
                "seed": key[0][:100],
                "geography": key[1],
                "language": key[2],
                "result_count": len(entry.results),
                "purged": purged,
            },
        )
        return entry

    def _purge_expired_locked(self, now: datetime) -> int:
        stale = [k for k, e in self._entries.items() if not e.is_fresh(now, self._ttl)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def purge_expired(self) -> int:
        """Drop stale entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            return self._purge_expired_locked(now)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats_summary(self) -> dict[str, float | int]:
        """Get cache statistics summary."""
        with self._lock:
            size = len(self._entries)
        return {
            "entries": size,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "expired": self._stats.expired,
            "writes": self._stats.writes,
            "hit_rate": round(self._stats.hit_rate, 3),
        }
