from __future__ import annotations

from datetime import datetime, timedelta
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class CacheEntry(BaseModel, Generic[T]):
    """A cached query result with its access bookkeeping."""

    key: str
    value: T
    created_at: datetime
    last_accessed_at: datetime


class CacheConfig(BaseModel):
    max_size: int = 100
    ttl: timedelta = timedelta(hours=1)
    cleanup_period: timedelta | None = None  # None → TTL/4, floored at one minute


class CacheCounters(BaseModel):
    """Persisted counters. Hits and misses are session-scoped."""

    hits: int = 0
    misses: int = 0
    size: int = 0


class CacheSnapshot(BaseModel, Generic[T]):
    """On-disk layout of the result cache."""

    entries: dict[str, CacheEntry[T]] = {}
    stats: CacheCounters = CacheCounters()
    config: CacheConfig = CacheConfig()


class CacheStats(BaseModel):
    size: int
    hits: int
    misses: int
    hit_rate: float  # 0.0–1.0
    max_size: int
    ttl_seconds: float
