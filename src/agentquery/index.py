"""In-memory agent index with a flat JSON snapshot.

The index keeps an ordered record list plus two lookup maps (by name and by
file identifier). All three are swapped together under one lock, so readers
only ever observe a complete old state or a complete new state.

Snapshot load failures are non-fatal: the index starts empty and logs a
warning, since a rebuild can always repopulate it. Save failures are logged
and reported through the return value.
"""

from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter, ValidationError

from agentquery.errors import AgentQueryError, ErrorCode
from agentquery.fields import SEARCHABLE_FIELDS, field_text, normalize_field
from agentquery.models.agent import AgentRecord
from agentquery.models.query import QueryOptions
from agentquery.models.stats import IndexStats

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

log = structlog.get_logger()

_RECORDS = TypeAdapter(list[AgentRecord])


def compile_matcher(query: str, regex: bool) -> Callable[[str], bool]:
    """Build a case-insensitive predicate for ``query``.

    Raises ``AgentQueryError`` (INVALID_PATTERN) for a bad regular expression.
    """
    if regex:
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error as exc:
            raise AgentQueryError(
                ErrorCode.INVALID_PATTERN, f"Invalid regex pattern {query!r}: {exc}"
            ) from exc
        return lambda text: pattern.search(text) is not None

    needle = query.lower()
    return lambda text: needle in text.lower()


def passes_filters(record: AgentRecord, opts: QueryOptions) -> bool:
    """Apply the source, install-time and capability-origin filters."""
    if opts.source and record.source_name != opts.source:
        return False
    if opts.after is not None and (
        record.installed_at is None or record.installed_at < opts.after
    ):
        return False
    if opts.no_capabilities and not record.capabilities_inherited:
        return False
    if opts.explicit_capabilities and record.capabilities_inherited:
        return False
    return True


def _split_capabilities(value: str) -> list[str]:
    # Blank entries are kept so that "" or "Read,," match nothing
    return [part.strip() for part in value.split(",")]


class IndexManager:
    """Authoritative store of agent records."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._lock = threading.Lock()
        self._records: list[AgentRecord] = []
        self._by_name: dict[str, AgentRecord] = {}
        self._by_file: dict[str, AgentRecord] = {}
        self.load()

    @property
    def path(self) -> Path | None:
        return self._path

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_record(self, record: AgentRecord) -> None:
        """Insert ``record``, replacing any record with the same file identifier."""
        with self._lock:
            previous = self._by_file.get(record.file_identifier)
            if previous is None:
                self._records.append(record)
            else:
                position = self._records.index(previous)
                self._records[position] = record
                if previous.name != record.name and self._by_name.get(previous.name) is previous:
                    self._repoint_name(previous.name)
            self._by_file[record.file_identifier] = record
            self._by_name[record.name] = record

    def _repoint_name(self, name: str) -> None:
        # Caller holds the lock. Latest remaining record with ``name`` wins.
        for candidate in reversed(self._records):
            if candidate.name == name:
                self._by_name[name] = candidate
                return
        del self._by_name[name]

    def rebuild(self, records: Iterable[AgentRecord]) -> None:
        """Replace the whole index with ``records``.

        Later records win when file identifiers collide.
        """
        by_file: dict[str, AgentRecord] = {}
        for record in records:
            by_file[record.file_identifier] = record
        ordered = list(by_file.values())
        by_name = {record.name: record for record in ordered}

        with self._lock:
            self._records = ordered
            self._by_name = by_name
            self._by_file = by_file

        log.info("index_rebuilt", total_agents=len(ordered))

    def rebuild_from_directory(
        self, directory: str | Path, parse_directory: Callable[[Path], list[AgentRecord]]
    ) -> None:
        """Parse ``directory`` and rebuild. Parser errors propagate unchanged."""
        records = parse_directory(Path(directory))
        self.rebuild(records)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(self, query: str, opts: QueryOptions | None = None) -> list[AgentRecord]:
        """Scan name, description and body for ``query``.

        Filters run before the text test. An empty query matches every record
        that passes the filters. Results follow index order and stop at
        ``opts.limit``.
        """
        opts = opts or QueryOptions()
        matches = compile_matcher(query, opts.regex) if query else None

        results: list[AgentRecord] = []
        with self._lock:
            for record in self._records:
                if not passes_filters(record, opts):
                    continue
                if matches is None or (
                    matches(record.name) or matches(record.description) or matches(record.body)
                ):
                    results.append(record)
                    if opts.limit and len(results) >= opts.limit:
                        break
        return results

    def search_by_field(self, field: str, value: str) -> list[AgentRecord]:
        """Search a single field.

        ``capabilities`` takes a comma-separated list and matches records that
        declare every listed capability, compared exactly. Records with
        inherited capabilities never match, and neither does a blank entry. ``source`` is an exact comparison. Other fields are
        case-insensitive substring tests.
        """
        canonical = normalize_field(field)
        if canonical not in SEARCHABLE_FIELDS:
            raise AgentQueryError(
                ErrorCode.INVALID_FIELD,
                f"Invalid field: {field!r}. Expected one of: {', '.join(sorted(SEARCHABLE_FIELDS))}",
            )

        if canonical == "capabilities":
            wanted = _split_capabilities(value)

            def predicate(record: AgentRecord) -> bool:
                if record.capabilities_inherited:
                    return False
                declared = {c for c in record.capabilities if c}
                return all(c in declared for c in wanted)

        elif canonical == "source":

            def predicate(record: AgentRecord) -> bool:
                return record.source_name == value

        else:
            needle = value.lower()

            def predicate(record: AgentRecord) -> bool:
                return needle in field_text(record, canonical).lower()

        with self._lock:
            return [record for record in self._records if predicate(record)]

    def get_by_file_identifier(self, file_identifier: str) -> AgentRecord | None:
        with self._lock:
            return self._by_file.get(file_identifier)

    def get_by_name(self, name: str) -> AgentRecord | None:
        with self._lock:
            return self._by_name.get(name)

    def get_all(self) -> list[AgentRecord]:
        """Copy of the record list; mutating it does not touch the index."""
        with self._lock:
            return list(self._records)

    def stats(self) -> IndexStats:
        with self._lock:
            return IndexStats(
                total_agents=len(self._records),
                indexed_names=len(self._by_name),
                indexed_files=len(self._by_file),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """Write the record list atomically. Returns False (and logs) on failure."""
        if self._path is None:
            return True

        with self._lock:
            payload = _RECORDS.dump_json(self._records, indent=2)

        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(payload)
            tmp.replace(self._path)
        except OSError:
            log.warning("index_save_error", path=str(self._path), exc_info=True)
            return False
        return True

    def load(self) -> bool:
        """Replace the index with the snapshot on disk.

        A missing, unreadable or malformed snapshot leaves the index empty.
        """
        if self._path is None:
            return False

        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            log.debug("index_snapshot_missing", path=str(self._path))
            return False
        except OSError:
            log.warning("index_load_failed", path=str(self._path), exc_info=True)
            return False

        try:
            records = _RECORDS.validate_json(raw)
        except ValidationError:
            log.warning("index_load_failed", path=str(self._path), exc_info=True)
            self.rebuild([])
            return False

        self.rebuild(records)
        return True
