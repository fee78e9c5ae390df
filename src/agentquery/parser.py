"""Agent definition parser.

An agent file is markdown with a YAML frontmatter block::

    ---
    name: go-expert
    description: Go specialist
    tools: Read, Write        # or a YAML list; omit to inherit defaults
    ---
    You are a Go expert...

The query engine takes any callable matching ``DirectoryParser``; this module
provides the default. Individual unparsable files are skipped with a warning.
An unreadable root directory is an error.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from pydantic import ValidationError

from agentquery.errors import AgentQueryError, ErrorCode
from agentquery.models.agent import AgentRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    DirectoryParser = Callable[[Path], list[AgentRecord]]

log = structlog.get_logger()

AGENT_FILE_SUFFIX = ".md"
_DELIMITER = "---"


class AgentParseError(ValueError):
    """A single file could not be turned into an AgentRecord."""


def _normalize_tools(raw: Any) -> list[str]:
    """Accept ``"Read, Write"``, ``["Read", "Write"]`` or nothing."""
    if raw is None:
        return []
    if isinstance(raw, str):
        return [part.strip() for part in raw.split(",") if part.strip()]
    if isinstance(raw, list):
        return [str(item).strip() for item in raw if str(item).strip()]
    raise AgentParseError(f"tools must be a string or a list, got {type(raw).__name__}")


class AgentParser:
    def __init__(self, suppress_warnings: bool = False) -> None:
        self._suppress_warnings = suppress_warnings

    def parse_text(self, text: str, path: Path) -> AgentRecord:
        parts = text.split(_DELIMITER, 2)
        if len(parts) < 3:
            raise AgentParseError("invalid agent format: missing frontmatter")

        try:
            frontmatter = yaml.safe_load(parts[1]) or {}
        except yaml.YAMLError as exc:
            raise AgentParseError(f"failed to parse frontmatter: {exc}") from exc
        if not isinstance(frontmatter, dict):
            raise AgentParseError("frontmatter must be a mapping")

        capabilities = _normalize_tools(frontmatter.get("tools"))
        try:
            return AgentRecord(
                name=str(frontmatter.get("name") or ""),
                description=str(frontmatter.get("description") or ""),
                capabilities=capabilities,
                capabilities_inherited=not capabilities,
                body=parts[2].strip(),
                file_identifier=path.name,
                file_path=str(path),
            )
        except ValidationError as exc:
            raise AgentParseError(str(exc)) from exc

    def parse_file(self, path: str | Path) -> AgentRecord:
        """Parse one file, adding size and modification time."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
            info = path.stat()
        except OSError as exc:
            raise AgentParseError(f"failed to read file: {exc}") from exc

        record = self.parse_text(text, path)
        return record.model_copy(
            update={
                "file_size": info.st_size,
                "modified_at": datetime.fromtimestamp(info.st_mtime, tz=UTC),
            }
        )

    def parse_directory(self, directory: str | Path) -> list[AgentRecord]:
        """Parse every ``*.md`` file under ``directory`` in path order."""
        root = Path(directory).expanduser()
        if not root.is_dir():
            raise AgentQueryError(
                ErrorCode.SOURCE_UNREADABLE,
                f"Agent directory not found or not a directory: {root}",
            )

        records: list[AgentRecord] = []
        try:
            paths = sorted(p for p in root.rglob(f"*{AGENT_FILE_SUFFIX}") if p.is_file())
        except OSError as exc:
            raise AgentQueryError(
                ErrorCode.SOURCE_UNREADABLE, f"Cannot scan agent directory {root}: {exc}"
            ) from exc

        for path in paths:
            try:
                records.append(self.parse_file(path))
            except AgentParseError as exc:
                if not self._suppress_warnings:
                    log.warning("agent_parse_skipped", path=str(path), reason=str(exc))

        log.debug("agent_directory_parsed", directory=str(root), parsed=len(records))
        return records

