"""Integration test fixtures.

Provides a fully wired QueryEngine whose index and cache snapshots live under
tmp_path, preloaded with the sample catalog from tests/conftest.py, plus an
on-disk agent directory for rebuild tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from agentquery.config import Settings
from agentquery.engine import QueryEngine

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from agentquery.models.agent import AgentRecord


def _agent_file(name: str, description: str, body: str, tools: str | None = None) -> str:
    lines = ["---", f"name: {name}", f"description: {description}"]
    if tools is not None:
        lines.append(f"tools: {tools}")
    lines += ["---", body, ""]
    return "\n".join(lines)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=str(tmp_path),
        index={"path": str(tmp_path / "index.json")},  # type: ignore[arg-type]
        cache={"path": str(tmp_path / "query-cache.json")},  # type: ignore[arg-type]
    )


@pytest.fixture()
def engine(settings: Settings, sample_records: list[AgentRecord]) -> Iterator[QueryEngine]:
    """Engine wired from settings and loaded with the sample catalog."""
    with QueryEngine.from_settings(settings) as eng:
        eng.rebuild_with_records(sample_records)
        yield eng


@pytest.fixture()
def agents_dir(tmp_path: Path) -> Path:
    root = tmp_path / "agents"
    root.mkdir()
    (root / "rust-expert.md").write_text(
        _agent_file("rust-expert", "Rust systems specialist", "You write safe Rust.", "Read, Edit"),
        encoding="utf-8",
    )
    (root / "plain-helper.md").write_text(
        _agent_file("plain-helper", "Generic helper", "You help."),
        encoding="utf-8",
    )
    return root
