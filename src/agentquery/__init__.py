"""Indexed, cached and fuzzy lookups over a catalog of agent definitions."""

from __future__ import annotations

from agentquery.engine import QueryEngine
from agentquery.errors import AgentQueryError, ErrorCode
from agentquery.models import AgentRecord, QueryOptions

__all__ = [
    "AgentQueryError",
    "AgentRecord",
    "ErrorCode",
    "QueryEngine",
    "QueryOptions",
]
