"""Query engine: the single entry point for agent lookups.

Composes the index, the result cache and the fuzzy matcher. Query results are
cached under a key derived from the query text and every non-default option.
Any change to the index contents clears the cache in the same call, so a
cached result is never served against a newer index.

The engine lock guards the index generation counter and is only ever taken
before the cache lock, never the other way round.
"""

from __future__ import annotations

import threading
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from agentquery.cache import ResultCache
from agentquery.errors import AgentQueryError, ErrorCode
from agentquery.fields import SEARCHABLE_FIELDS, normalize_field
from agentquery.fuzzy import FuzzyMatcher
from agentquery.index import IndexManager, compile_matcher, passes_filters
from agentquery.models.agent import AgentRecord
from agentquery.models.cache import CacheConfig
from agentquery.models.query import QueryOptions
from agentquery.models.stats import EngineStats
from agentquery.parser import AGENT_FILE_SUFFIX, AgentParser
from agentquery.stats import StatsCalculator

if TYPE_CHECKING:
    from types import TracebackType

    from agentquery.config import Settings
    from agentquery.models.cache import CacheStats
    from agentquery.models.stats import CatalogStatistics
    from agentquery.parser import DirectoryParser

log = structlog.get_logger()

_KEY_DELIMITER = "|"
_FUZZY_PREFIX = "fuzzy:"


def build_cache_key(query: str, opts: QueryOptions) -> str:
    """Deterministic key from the query text and every non-default option."""
    parts = [f"q:{query}"]
    if opts.limit > 0:
        parts.append(f"l:{opts.limit}")
    if opts.no_capabilities:
        parts.append("nc:true")
    if opts.explicit_capabilities:
        parts.append("ec:true")
    if opts.regex:
        parts.append("r:true")
    if opts.source:
        parts.append(f"s:{opts.source}")
    if opts.after is not None:
        parts.append(f"a:{int(opts.after.timestamp())}")
    return _KEY_DELIMITER.join(parts)


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise AgentQueryError(ErrorCode.QUERY_CANCELLED, "Query cancelled", recoverable=True)


class QueryEngine:
    def __init__(
        self,
        index: IndexManager,
        cache: ResultCache[list[AgentRecord]],
        fuzzy: FuzzyMatcher,
        parse_directory: DirectoryParser | None = None,
    ) -> None:
        self._index = index
        self._cache = cache
        self._fuzzy = fuzzy
        self._parse_directory = (
            parse_directory or AgentParser(suppress_warnings=True).parse_directory
        )
        self._generation = 0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, parse_directory: DirectoryParser | None = None
    ) -> QueryEngine:
        """Wire index, cache and matcher from configuration.

        Snapshot load failures are tolerated; the engine always starts ready.
        """
        index = IndexManager(settings.index.path)
        cache: ResultCache[list[AgentRecord]] = ResultCache(
            settings.cache.path,
            list[AgentRecord],
            CacheConfig(
                max_size=settings.cache.max_size,
                ttl=settings.cache.ttl,
                cleanup_period=settings.cache.cleanup_period,
            ),
        )
        fuzzy = FuzzyMatcher(settings.fuzzy.threshold)
        return cls(index, cache, fuzzy, parse_directory)

    @property
    def index(self) -> IndexManager:
        return self._index

    @property
    def cache(self) -> ResultCache[list[AgentRecord]]:
        return self._cache

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        text: str,
        opts: QueryOptions | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> list[AgentRecord]:
        """Substring (or regex) search over name, description and body."""
        _check_cancelled(cancel)
        opts = opts or QueryOptions()
        if opts.regex and text:
            compile_matcher(text, regex=True)  # surface a bad pattern before the cache

        key = build_cache_key(text, opts)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        generation = self._generation
        results = self._index.search(text, opts)
        self._store(key, results, generation)
        return list(results)

    def query_with_fuzzy(
        self,
        text: str,
        opts: QueryOptions | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> list[AgentRecord]:
        """Ranked multi-field fuzzy search, filtered by ``opts`` afterwards."""
        _check_cancelled(cancel)
        opts = opts or QueryOptions()

        key = build_cache_key(_FUZZY_PREFIX + text, opts)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        generation = self._generation
        ranked = self._fuzzy.multi_field_search(text, self._index.get_all())
        results = [record for record in ranked if passes_filters(record, opts)]
        if opts.limit > 0:
            results = results[: opts.limit]

        self._store(key, results, generation)
        return list(results)

    def _store(self, key: str, results: list[AgentRecord], generation: int) -> None:
        with self._lock:
            if generation == self._generation:
                self._cache.set(key, results)

    def query_by_field(self, field: str, value: str) -> list[AgentRecord]:
        """Search one field. Unknown field names raise INVALID_FIELD."""
        canonical = normalize_field(field)
        if canonical not in SEARCHABLE_FIELDS:
            raise AgentQueryError(
                ErrorCode.INVALID_FIELD,
                f"Invalid field: {field.strip()!r}. "
                f"Expected one of: {', '.join(sorted(SEARCHABLE_FIELDS))}",
            )
        return self._index.search_by_field(canonical, value.strip())

    def show_agent(self, identifier: str) -> AgentRecord:
        """Resolve one agent by file identifier, falling back to fuzzy matching.

        Tries the identifier as given, then with the ``.md`` suffix, then the
        closest file identifier above the fuzzy threshold.
        """
        identifier = identifier.strip()
        if not identifier:
            raise AgentQueryError(ErrorCode.INVALID_INPUT, "identifier must not be empty")

        record = self._index.get_by_file_identifier(identifier)
        if record is not None:
            return record

        if not identifier.endswith(AGENT_FILE_SUFFIX):
            record = self._index.get_by_file_identifier(identifier + AGENT_FILE_SUFFIX)
            if record is not None:
                return record

        record = self._fuzzy.find_best(identifier, self._index.get_all())
        if record is not None:
            log.debug("show_agent_fuzzy_match", identifier=identifier, match=record.file_identifier)
            return record

        raise AgentQueryError(ErrorCode.AGENT_NOT_FOUND, f"Agent not found: {identifier}")

    def get_all_agents(self) -> list[AgentRecord]:
        return self._index.get_all()

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    def rebuild_index(self, directory: str | Path) -> None:
        """Clear the cache, then rebuild the index from ``directory`` and save it.

        Parser errors propagate unchanged; the cache is cleared regardless.
        """
        self._cache.clear()
        self._index.rebuild_from_directory(directory, self._parse_directory)
        self._index_changed()
        self._index.save()

    def update_index(self, directory: str | Path) -> None:
        """Re-parse ``directory``, swap the index, save it and clear the cache."""
        records = self._parse_directory(Path(directory))
        self._index.rebuild(records)
        self._index_changed()
        self._index.save()

    def rebuild_with_records(self, records: list[AgentRecord]) -> None:
        """Replace the index with an externally supplied record set."""
        self._cache.clear()
        self._index.rebuild(records)
        self._index_changed()

    def add_record(self, record: AgentRecord) -> None:
        """Insert or replace a single record."""
        self._index.add_record(record)
        self._index_changed()

    def _index_changed(self) -> None:
        # Results computed against the previous generation are never cached.
        with self._lock:
            self._generation += 1
            self._cache.clear()

    # ------------------------------------------------------------------
    # Observability and cache control
    # ------------------------------------------------------------------

    def get_stats(self) -> EngineStats:
        records = self._index.get_all()
        by_source = Counter(r.source_name for r in records if r.source_name)
        inherited = sum(1 for r in records if r.capabilities_inherited)
        return EngineStats(
            total_agents=len(records),
            cache_stats=self._cache.stats(),
            index_stats=self._index.stats(),
            by_source=dict(by_source),
            capabilities_inherited=inherited,
            capabilities_explicit=len(records) - inherited,
        )

    def catalog_statistics(self) -> CatalogStatistics:
        return StatsCalculator(self._index.get_all()).calculate()

    def clear_cache(self) -> None:
        self._cache.clear()

    def save_cache(self) -> bool:
        return self._cache.save()

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def set_fuzzy_threshold(self, threshold: float) -> None:
        self._fuzzy.set_threshold(threshold)

    def close(self) -> None:
        """Stop the cache sweeper and persist the cache."""
        self._cache.close()

    def __enter__(self) -> QueryEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
