"""Unit-specific fixtures (no I/O beyond tmp_path)."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from agentquery.cache import ResultCache
from agentquery.fuzzy import FuzzyMatcher
from agentquery.index import IndexManager
from agentquery.models.cache import CacheConfig

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from agentquery.models.agent import AgentRecord


@pytest.fixture()
def index(tmp_path: Path, sample_records: list[AgentRecord]) -> IndexManager:
    """Index backed by a temp snapshot path, preloaded with the sample catalog."""
    manager = IndexManager(tmp_path / "index.json")
    manager.rebuild(sample_records)
    return manager


@pytest.fixture()
def cache(tmp_path: Path) -> Iterator[ResultCache[str]]:
    """String-valued cache without the background sweeper."""
    c: ResultCache[str] = ResultCache(
        tmp_path / "cache.json",
        str,
        CacheConfig(max_size=3, ttl=timedelta(hours=1)),
        start_sweeper=False,
    )
    yield c
    c.close()


@pytest.fixture()
def matcher() -> FuzzyMatcher:
    return FuzzyMatcher(threshold=0.7)
