"""Catalog-wide statistics over a set of agent records."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import TYPE_CHECKING

from agentquery.models.stats import (
    CapabilityCount,
    CapabilityStats,
    CatalogStatistics,
    CoverageStats,
    ValidationSummary,
)
from agentquery.validator import AgentValidator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from agentquery.models.agent import AgentRecord

UNKNOWN_SOURCE = "unknown"


class StatsCalculator:
    def __init__(self, records: Sequence[AgentRecord]) -> None:
        self._records = list(records)
        self._validator = AgentValidator()

    def calculate(self) -> CatalogStatistics:
        by_source = Counter(r.source_name for r in self._records if r.source_name)

        paths_by_name: dict[str, list[str]] = defaultdict(list)
        for record in self._records:
            paths_by_name[record.name].append(record.file_path)
        duplicates = {name: paths for name, paths in paths_by_name.items() if len(paths) > 1}

        orphaned = sum(1 for r in self._records if not self._validator.is_valid(r))

        return CatalogStatistics(
            total_agents=len(self._records),
            by_source=dict(by_source),
            coverage=self._coverage(),
            capability_usage=self._capability_usage(),
            duplicates=duplicates,
            orphaned_agents=orphaned,
        )

    def _coverage(self) -> CoverageStats:
        coverage = CoverageStats()
        total = 0.0
        for record in self._records:
            present = 0
            if record.name:
                coverage.with_name += 1
                present += 1
            if record.description:
                coverage.with_description += 1
                present += 1
            if record.capabilities:
                # optional, so not part of the coverage percentage
                coverage.with_capabilities += 1
            if record.body:
                coverage.with_body += 1
                present += 1
            total += present / 3 * 100

        if self._records:
            coverage.average_coverage = total / len(self._records)
        return coverage

    def _capability_usage(self) -> CapabilityStats:
        usage = CapabilityStats()
        distribution: Counter[str] = Counter()
        for record in self._records:
            if record.capabilities_inherited:
                usage.inherited += 1
            else:
                usage.explicit += 1
                distribution.update(record.capabilities)
        usage.distribution = dict(distribution)
        return usage

    def top_capabilities(self, limit: int = 0) -> list[CapabilityCount]:
        """Most declared capabilities first; ties keep first-seen order."""
        ranked = Counter(self._capability_usage().distribution).most_common(limit or None)
        return [CapabilityCount(capability=name, count=count) for name, count in ranked]

    def source_statistics(self) -> dict[str, CatalogStatistics]:
        groups: dict[str, list[AgentRecord]] = defaultdict(list)
        for record in self._records:
            groups[record.source_name or UNKNOWN_SOURCE].append(record)
        return {source: StatsCalculator(group).calculate() for source, group in groups.items()}

    def validation_report(self) -> ValidationSummary:
        valid = 0
        errors: Counter[str] = Counter()
        warnings: Counter[str] = Counter()

        for record in self._records:
            report = self._validator.validate_with_report(record)
            if report.valid:
                valid += 1
            errors.update(report.errors)
            warnings.update(report.warnings)

        total = len(self._records)
        return ValidationSummary(
            total_agents=total,
            valid_agents=valid,
            invalid_agents=total - valid,
            validation_rate=valid / total * 100 if total else 0.0,
            common_errors=dict(errors),
            common_warnings=dict(warnings),
        )
