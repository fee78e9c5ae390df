from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, field_validator


class AgentRecord(BaseModel):
    """One parsed agent definition.

    Records are value-immutable once indexed: the index adds, replaces and
    drops whole records but never edits a field in place.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    capabilities: list[str] = []
    # True when the definition declared no capability list and defers to defaults
    capabilities_inherited: bool = False
    body: str = ""

    file_identifier: str  # Basename of the source file, e.g. "go-expert.md"
    file_path: str = ""
    file_size: int = 0
    modified_at: datetime | None = None

    source_name: str = ""
    installed_at: datetime | None = None

    @field_validator("modified_at", "installed_at")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        # Naive timestamps (older snapshots, hand-built records) are taken as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v
