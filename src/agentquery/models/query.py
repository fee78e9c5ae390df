from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, field_validator


class QueryOptions(BaseModel):
    """Filters and switches shared by the index scan and the fuzzy search.

    ``no_capabilities`` and ``explicit_capabilities`` may both be set; such a
    query is legal and simply matches nothing.
    """

    limit: int = 0  # 0 = unlimited
    no_capabilities: bool = False  # only records with inherited capabilities
    explicit_capabilities: bool = False  # only records with a declared list
    regex: bool = False
    source: str = ""
    after: datetime | None = None  # installed at or after this instant

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError("limit must be >= 0")
        return v

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        return v.strip()

    @field_validator("after")
    @classmethod
    def validate_after(cls, v: datetime | None) -> datetime | None:
        # Naive datetimes are taken as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v
