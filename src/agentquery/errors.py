"""Error taxonomy for the query subsystem.

Every failure a caller needs to act on is raised as ``AgentQueryError`` with a
machine-readable ``ErrorCode``. Persistence problems (index or cache snapshot
read/write) are deliberately absent: those are logged and recovered locally
and never cross a component boundary.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_FIELD = "INVALID_FIELD"
    INVALID_PATTERN = "INVALID_PATTERN"
    INVALID_AGENT = "INVALID_AGENT"
    QUERY_CANCELLED = "QUERY_CANCELLED"
    SOURCE_UNREADABLE = "SOURCE_UNREADABLE"


class AgentQueryError(Exception):
    """Raised for not-found, invalid-input, cancellation and parser failures."""

    def __init__(self, code: ErrorCode, message: str, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    @property
    def is_not_found(self) -> bool:
        return self.code == ErrorCode.AGENT_NOT_FOUND

    def to_dict(self) -> dict[str, dict[str, object]]:
        """Structured envelope for CLI or tool output."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }
