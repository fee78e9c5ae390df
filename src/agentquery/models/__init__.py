from __future__ import annotations

from agentquery.models.agent import AgentRecord
from agentquery.models.cache import (
    CacheConfig,
    CacheCounters,
    CacheEntry,
    CacheSnapshot,
    CacheStats,
)
from agentquery.models.query import QueryOptions
from agentquery.models.stats import (
    CapabilityCount,
    CapabilityStats,
    CatalogStatistics,
    CoverageStats,
    EngineStats,
    IndexStats,
    ValidationReport,
    ValidationSummary,
)

__all__ = [
    # agent
    "AgentRecord",
    # query
    "QueryOptions",
    # cache
    "CacheConfig",
    "CacheCounters",
    "CacheEntry",
    "CacheSnapshot",
    "CacheStats",
    # stats
    "IndexStats",
    "EngineStats",
    "CoverageStats",
    "CapabilityStats",
    "CatalogStatistics",
    "CapabilityCount",
    "ValidationReport",
    "ValidationSummary",
]
