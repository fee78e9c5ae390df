from __future__ import annotations

from pydantic import BaseModel

from agentquery.models.cache import CacheStats


class IndexStats(BaseModel):
    total_agents: int
    indexed_names: int
    indexed_files: int


class EngineStats(BaseModel):
    """Snapshot returned by QueryEngine.get_stats."""

    total_agents: int
    cache_stats: CacheStats
    index_stats: IndexStats
    by_source: dict[str, int]
    capabilities_inherited: int
    capabilities_explicit: int


class CoverageStats(BaseModel):
    with_name: int = 0
    with_description: int = 0
    with_capabilities: int = 0
    with_body: int = 0
    average_coverage: float = 0.0  # percent, over name/description/body


class CapabilityStats(BaseModel):
    inherited: int = 0
    explicit: int = 0
    distribution: dict[str, int] = {}


class CatalogStatistics(BaseModel):
    total_agents: int
    by_source: dict[str, int]
    coverage: CoverageStats
    capability_usage: CapabilityStats
    duplicates: dict[str, list[str]]  # name → file paths sharing it
    orphaned_agents: int


class CapabilityCount(BaseModel):
    capability: str
    count: int


class ValidationReport(BaseModel):
    valid: bool = True
    errors: list[str] = []
    warnings: list[str] = []
    coverage: float = 0.0  # percent, over name/description/capabilities/body


class ValidationSummary(BaseModel):
    total_agents: int
    valid_agents: int
    invalid_agents: int
    validation_rate: float  # percent
    common_errors: dict[str, int]
    common_warnings: dict[str, int]
