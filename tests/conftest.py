"""Shared fixtures: a small, realistic agent catalog."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from agentquery.models.agent import AgentRecord

INSTALLED = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def make_record(
    name: str,
    *,
    description: str = "",
    capabilities: list[str] | None = None,
    body: str = "",
    source: str = "",
    installed_at: datetime | None = None,
    file_identifier: str | None = None,
) -> AgentRecord:
    capabilities = capabilities or []
    file_identifier = file_identifier or f"{name}.md"
    return AgentRecord(
        name=name,
        description=description,
        capabilities=capabilities,
        capabilities_inherited=not capabilities,
        body=body,
        file_identifier=file_identifier,
        file_path=f"/agents/{file_identifier}",
        source_name=source,
        installed_at=installed_at,
    )


@pytest.fixture()
def sample_records() -> list[AgentRecord]:
    return [
        make_record(
            "go-expert",
            description="Go language specialist",
            capabilities=["Read", "Write"],
            body="You are an expert Go developer focused on concurrency.",
            source="community",
            installed_at=INSTALLED,
        ),
        make_record(
            "minimal-helper",
            description="Small helper with default tools",
            body="You help with small chores.",
            source="local",
            installed_at=INSTALLED - timedelta(days=30),
        ),
        make_record(
            "python-pro",
            description="Python specialist for data processing",
            capabilities=["Read", "Write", "Bash"],
            body="You write idiomatic Python and review data pipelines.",
            source="community",
            installed_at=INSTALLED + timedelta(days=10),
        ),
        make_record(
            "data-processor",
            description="Transforms CSV and JSON data",
            capabilities=["Read", "Grep"],
            body="You process data files.",
            source="marketplace",
        ),
    ]


@pytest.fixture()
def record_factory():
    """Build one AgentRecord with sensible defaults."""
    return make_record


@pytest.fixture()
def installed_at() -> datetime:
    """Install time of go-expert; the other sample records sit either side of it."""
    return INSTALLED
