"""Bounded TTL + LRU result cache with a JSON snapshot.

Entries expire ``ttl`` after creation. Expired entries are dropped lazily on
read and by a background sweep thread; when the cache is full, the entry with
the oldest ``last_accessed_at`` is evicted before a new key is inserted.

Like the index, the cache never lets persistence failures escape: a missing
or corrupt snapshot yields an empty cache with reset counters, and a failed
save is logged and reported through the return value. Hit and miss counters
are session statistics: ``clear()`` keeps them and ``load()`` resets them.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Generic, TypeVar

import structlog
from pydantic import ValidationError

from agentquery.models.cache import (
    CacheConfig,
    CacheCounters,
    CacheEntry,
    CacheSnapshot,
    CacheStats,
)

log = structlog.get_logger()

T = TypeVar("T")

_MIN_CLEANUP_PERIOD = timedelta(minutes=1)


def _now() -> datetime:
    return datetime.now(UTC)


def default_cleanup_period(ttl: timedelta) -> timedelta:
    """TTL/4, never more often than once a minute."""
    return max(ttl / 4, _MIN_CLEANUP_PERIOD)


class ResultCache(Generic[T]):
    """Thread-safe key/value cache for query results of type ``T``.

    ``value_type`` is the concrete result type (e.g. ``list[AgentRecord]``)
    and is used to validate entries read back from disk.
    """

    def __init__(
        self,
        path: str | Path | None,
        value_type: Any,
        config: CacheConfig | None = None,
        start_sweeper: bool = True,
    ) -> None:
        config = config or CacheConfig()
        if config.cleanup_period is None:
            config = config.model_copy(
                update={"cleanup_period": default_cleanup_period(config.ttl)}
            )
        self._config = config
        self._path = Path(path).expanduser() if path else None
        self._snapshot_type = CacheSnapshot[value_type]  # type: ignore[valid-type]
        self._entry_type = CacheEntry[value_type]  # type: ignore[valid-type]

        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0

        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

        self.load()

        if start_sweeper and config.cleanup_period and config.cleanup_period > timedelta(0):
            self._sweeper = threading.Thread(
                target=self._sweep_loop, name="result-cache-sweeper", daemon=True
            )
            self._sweeper.start()

    @property
    def config(self) -> CacheConfig:
        return self._config

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, key: str) -> T | None:
        """Return the cached value, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = _now()
            if now - entry.created_at > self._config.ttl:
                del self._entries[key]
                self._misses += 1
                return None

            entry.last_accessed_at = now
            self._hits += 1
            return entry.value

    def set(self, key: str, value: T) -> None:
        """Store ``value``, evicting the least recently accessed entry if full."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._config.max_size:
                self._evict_least_recent()

            now = _now()
            self._entries[key] = self._entry_type(
                key=key, value=value, created_at=now, last_accessed_at=now
            )

    def _evict_least_recent(self) -> None:
        # Caller holds the lock.
        if not self._entries:
            return
        oldest = min(self._entries.values(), key=lambda e: e.last_accessed_at)
        del self._entries[oldest.key]
        log.debug("cache_evicted", key=oldest.key)

    def clear(self) -> None:
        """Drop every entry. Hit/miss counters are kept."""
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
                max_size=self._config.max_size,
                ttl_seconds=self._config.ttl.total_seconds(),
            )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup_expired(self) -> int:
        """Delete every entry past its TTL; saves if anything was removed.

        Returns the number of entries removed. Save errors are ignored here.
        """
        with self._lock:
            now = _now()
            expired = [
                key
                for key, entry in self._entries.items()
                if now - entry.created_at > self._config.ttl
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            log.debug("cache_sweep_complete", removed=len(expired))
            self.save()
        return len(expired)

    def _sweep_loop(self) -> None:
        assert self._config.cleanup_period is not None
        interval = self._config.cleanup_period.total_seconds()
        while not self._stop.wait(interval):
            self.cleanup_expired()

    def close(self) -> bool:
        """Stop the sweep thread and write a final snapshot."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join()
            self._sweeper = None
        return self.save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """Write entries, counters and config atomically. False on failure."""
        if self._path is None:
            return True

        with self._lock:
            snapshot = self._snapshot_type(
                entries=dict(self._entries),
                stats=CacheCounters(
                    hits=self._hits, misses=self._misses, size=len(self._entries)
                ),
                config=self._config,
            )
            payload = snapshot.model_dump_json(indent=2)

        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(self._path)
        except OSError:
            log.warning("cache_save_error", path=str(self._path), exc_info=True)
            return False
        return True

    def load(self) -> bool:
        """Load the snapshot, dropping entries already past TTL.

        Hit/miss counters restart at zero. The active config is kept; the
        persisted config is informational only. Entries beyond the active
        ``max_size`` are dropped, least recently accessed first.
        """
        if self._path is None:
            return False

        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        except OSError:
            log.warning("cache_load_error", path=str(self._path), exc_info=True)
            return False

        try:
            snapshot = self._snapshot_type.model_validate_json(raw)
        except ValidationError:
            log.warning("cache_load_error", path=str(self._path), exc_info=True)
            with self._lock:
                self._entries = {}
                self._hits = 0
                self._misses = 0
            return False

        now = _now()
        fresh = {
            key: entry
            for key, entry in snapshot.entries.items()
            if now - entry.created_at <= self._config.ttl
        }
        if len(fresh) > self._config.max_size:
            # Snapshot written under a larger max_size; keep the most recently used
            recent = sorted(fresh.values(), key=lambda e: e.last_accessed_at, reverse=True)
            fresh = {e.key: e for e in recent[: self._config.max_size]}
        with self._lock:
            self._entries = fresh
            self._hits = 0
            self._misses = 0

        dropped = len(snapshot.entries) - len(fresh)
        log.debug("cache_loaded", entries=len(fresh), dropped=dropped)
        return True
