"""Field-name dispatch shared by the index, the fuzzy matcher and the engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from agentquery.models.agent import AgentRecord

# canonical field → text accessor
FIELD_ACCESSORS: dict[str, Callable[[AgentRecord], str]] = {
    "name": lambda r: r.name,
    "description": lambda r: r.description,
    "body": lambda r: r.body,
    "capabilities": lambda r: " ".join(r.capabilities),
    "source": lambda r: r.source_name,
    "file_identifier": lambda r: r.file_identifier,
}

FIELD_ALIASES: dict[str, str] = {
    "content": "body",
    "prompt": "body",
    "tools": "capabilities",
    "filename": "file_identifier",
    "file": "file_identifier",
}

# Fields accepted by IndexManager.search_by_field / QueryEngine.query_by_field
SEARCHABLE_FIELDS = frozenset({"name", "description", "body", "capabilities", "source"})


def normalize_field(field: str) -> str | None:
    """Return the canonical name for ``field`` or None if it is unknown."""
    key = field.strip().lower()
    key = FIELD_ALIASES.get(key, key)
    return key if key in FIELD_ACCESSORS else None


def field_text(record: AgentRecord, field: str) -> str:
    """Text of a canonical field. Unknown fields read as empty."""
    accessor = FIELD_ACCESSORS.get(field)
    return accessor(record) if accessor is not None else ""
