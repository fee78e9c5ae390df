"""End-to-end tests for QueryEngine wired from Settings."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from agentquery.engine import QueryEngine, build_cache_key
from agentquery.errors import AgentQueryError, ErrorCode
from agentquery.models.query import QueryOptions

if TYPE_CHECKING:
    from datetime import datetime

    from agentquery.config import Settings
    from agentquery.models.agent import AgentRecord


def _names(records: list[AgentRecord]) -> list[str]:
    return [r.name for r in records]


# ---------------------------------------------------------------------------
# Core lookups
# ---------------------------------------------------------------------------


class TestTwoRecordCatalog:
    """One agent with declared tools and one inheriting the defaults."""

    @pytest.fixture()
    def small_engine(self, engine: QueryEngine, sample_records: list[AgentRecord]) -> QueryEngine:
        engine.rebuild_with_records(sample_records[:2])
        return engine

    def test_tools_field_query(self, small_engine: QueryEngine) -> None:
        assert _names(small_engine.query_by_field("tools", "Write")) == ["go-expert"]

    def test_no_capabilities_filter(self, small_engine: QueryEngine) -> None:
        results = small_engine.query("", QueryOptions(no_capabilities=True))
        assert _names(results) == ["minimal-helper"]

    def test_show_agent_fuzzy_fallback(self, small_engine: QueryEngine) -> None:
        assert small_engine.show_agent("go-exp").name == "go-expert"


class TestQuery:
    def test_substring(self, engine: QueryEngine) -> None:
        assert _names(engine.query("specialist")) == ["go-expert", "python-pro"]

    def test_filters(self, engine: QueryEngine, installed_at: datetime) -> None:
        opts = QueryOptions(source="community", after=installed_at, limit=1)
        assert _names(engine.query("", opts)) == ["go-expert"]

    def test_naive_after_is_treated_as_utc(
        self, engine: QueryEngine, installed_at: datetime
    ) -> None:
        naive = installed_at.replace(tzinfo=None)
        opts = QueryOptions(after=naive)
        assert _names(engine.query("", opts)) == ["go-expert", "python-pro"]
        assert _names(engine.query_with_fuzzy("python", opts)) == ["python-pro"]
        assert build_cache_key("", opts) == build_cache_key("", QueryOptions(after=installed_at))

    def test_regex(self, engine: QueryEngine) -> None:
        assert _names(engine.query("^data-", QueryOptions(regex=True))) == ["data-processor"]

    def test_invalid_regex_is_not_cached(self, engine: QueryEngine) -> None:
        with pytest.raises(AgentQueryError) as exc_info:
            engine.query("([", QueryOptions(regex=True))
        assert exc_info.value.code == ErrorCode.INVALID_PATTERN
        stats = engine.get_cache_stats()
        assert stats.size == 0
        assert stats.misses == 0

    def test_returned_list_is_a_copy(self, engine: QueryEngine) -> None:
        first = engine.query("specialist")
        first.clear()
        assert len(engine.query("specialist")) == 2

    def test_cancelled_before_start(self, engine: QueryEngine) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(AgentQueryError) as exc_info:
            engine.query("go", cancel=cancel)
        assert exc_info.value.code == ErrorCode.QUERY_CANCELLED
        assert exc_info.value.recoverable is True

        with pytest.raises(AgentQueryError):
            engine.query_with_fuzzy("go", cancel=cancel)

    def test_unset_cancel_event_runs_normally(self, engine: QueryEngine) -> None:
        assert _names(engine.query("golang", cancel=threading.Event())) == []


class TestQueryWithFuzzy:
    def test_ranked_match(self, engine: QueryEngine) -> None:
        assert _names(engine.query_with_fuzzy("python")) == ["python-pro"]

    def test_filters_apply_after_ranking(self, engine: QueryEngine) -> None:
        assert engine.query_with_fuzzy("python", QueryOptions(source="local")) == []

    def test_cached_separately_from_plain_query(self, engine: QueryEngine) -> None:
        engine.query("python")
        engine.query_with_fuzzy("python")
        assert engine.get_cache_stats().size == 2


class TestQueryByField:
    def test_capabilities_all_required(self, engine: QueryEngine) -> None:
        results = engine.query_by_field("capabilities", "Read, Bash")
        assert _names(results) == ["python-pro"]

    def test_value_is_trimmed(self, engine: QueryEngine) -> None:
        assert _names(engine.query_by_field(" Name ", "  data ")) == ["data-processor"]

    def test_invalid_field(self, engine: QueryEngine) -> None:
        with pytest.raises(AgentQueryError) as exc_info:
            engine.query_by_field("colour", "blue")
        assert exc_info.value.code == ErrorCode.INVALID_FIELD
        assert exc_info.value.to_dict()["error"]["code"] == "INVALID_FIELD"


class TestShowAgent:
    @pytest.mark.parametrize("identifier", ["python-pro.md", "python-pro", "  python-pro  "])
    def test_exact_and_suffixed(self, engine: QueryEngine, identifier: str) -> None:
        assert engine.show_agent(identifier).name == "python-pro"

    def test_empty_identifier(self, engine: QueryEngine) -> None:
        with pytest.raises(AgentQueryError) as exc_info:
            engine.show_agent("   ")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_not_found(self, engine: QueryEngine) -> None:
        with pytest.raises(AgentQueryError) as exc_info:
            engine.show_agent("zzzzzz")
        assert exc_info.value.is_not_found

    def test_threshold_change_disables_fuzzy_fallback(self, engine: QueryEngine) -> None:
        engine.set_fuzzy_threshold(1.01)
        with pytest.raises(AgentQueryError) as exc_info:
            engine.show_agent("go-exp")
        assert exc_info.value.code == ErrorCode.AGENT_NOT_FOUND


# ---------------------------------------------------------------------------
# Caching and index changes
# ---------------------------------------------------------------------------


class TestCaching:
    def test_repeat_query_hits_cache(self, engine: QueryEngine) -> None:
        engine.query("specialist")
        engine.query("specialist")
        stats = engine.get_cache_stats()
        assert stats.hits == 1
        assert stats.misses == 1

    def test_options_are_part_of_the_key(self, engine: QueryEngine) -> None:
        engine.query("specialist")
        engine.query("specialist", QueryOptions(limit=1))
        assert engine.get_cache_stats().misses == 2
        assert build_cache_key("x", QueryOptions()) != build_cache_key("x", QueryOptions(limit=1))

    def test_rebuild_index_forces_recompute(self, engine: QueryEngine, agents_dir: Path) -> None:
        engine.query("specialist")
        engine.rebuild_index(agents_dir)
        results = engine.query("specialist")

        assert _names(results) == ["rust-expert"]
        stats = engine.get_cache_stats()
        assert stats.misses == 2
        assert stats.hits == 0

    def test_update_index_clears_cache(self, engine: QueryEngine, agents_dir: Path) -> None:
        engine.query("specialist")
        engine.update_index(agents_dir)
        assert engine.get_cache_stats().size == 0
        assert sorted(_names(engine.get_all_agents())) == ["plain-helper", "rust-expert"]

    def test_add_record_clears_cache(self, engine: QueryEngine, record_factory) -> None:
        engine.query("specialist")
        engine.add_record(record_factory("ruby-pro", description="Ruby specialist"))
        assert engine.get_cache_stats().size == 0
        assert "ruby-pro" in _names(engine.query("specialist"))

    def test_result_from_superseded_index_is_not_cached(
        self, engine: QueryEngine, record_factory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_search = engine.index.search

        def racing_search(text: str, opts: QueryOptions | None = None) -> list[AgentRecord]:
            results = original_search(text, opts)
            engine.add_record(record_factory("late-arrival", description="specialist"))
            return results

        monkeypatch.setattr(engine.index, "search", racing_search)
        engine.query("specialist")
        assert engine.get_cache_stats().size == 0

    def test_index_change_waits_for_in_flight_cache_fill(
        self, engine: QueryEngine, record_factory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        filling = threading.Event()
        release = threading.Event()
        original_set = engine.cache.set

        def slow_set(key: str, value: list[AgentRecord]) -> None:
            filling.set()
            release.wait(timeout=5)
            original_set(key, value)

        monkeypatch.setattr(engine.cache, "set", slow_set)
        reader = threading.Thread(target=engine.query, args=("specialist",))
        reader.start()
        assert filling.wait(timeout=5)

        writer = threading.Thread(
            target=engine.add_record, args=(record_factory("ruby-pro", description="specialist"),)
        )
        writer.start()
        writer.join(timeout=0.2)
        assert writer.is_alive()

        release.set()
        reader.join(timeout=5)
        writer.join(timeout=5)
        assert engine.get_cache_stats().size == 0
        assert "ruby-pro" in _names(engine.query("specialist"))

    def test_clear_cache(self, engine: QueryEngine) -> None:
        engine.query("specialist")
        engine.clear_cache()
        assert engine.get_cache_stats().size == 0

    def test_missing_directory_clears_cache_and_raises(
        self, engine: QueryEngine, tmp_path: Path
    ) -> None:
        engine.query("specialist")
        with pytest.raises(AgentQueryError) as exc_info:
            engine.rebuild_index(tmp_path / "absent")
        assert exc_info.value.code == ErrorCode.SOURCE_UNREADABLE
        assert engine.get_cache_stats().size == 0
        assert len(engine.get_all_agents()) == 4

    def test_custom_directory_parser(self, settings: Settings, record_factory) -> None:
        seen: list[Path] = []

        def parse(directory: Path) -> list[AgentRecord]:
            seen.append(directory)
            return [record_factory("injected")]

        with QueryEngine.from_settings(settings, parse_directory=parse) as eng:
            eng.rebuild_index("/somewhere/agents")
            assert _names(eng.get_all_agents()) == ["injected"]
        assert [str(p) for p in seen] == ["/somewhere/agents"]


# ---------------------------------------------------------------------------
# Statistics and persistence
# ---------------------------------------------------------------------------


class TestStats:
    def test_engine_stats(self, engine: QueryEngine) -> None:
        engine.query("specialist")
        stats = engine.get_stats()
        assert stats.total_agents == 4
        assert stats.index_stats.total_agents == 4
        assert stats.cache_stats.size == 1
        assert stats.by_source == {"community": 2, "local": 1, "marketplace": 1}
        assert stats.capabilities_inherited == 1
        assert stats.capabilities_explicit == 3

    def test_catalog_statistics(self, engine: QueryEngine) -> None:
        stats = engine.catalog_statistics()
        assert stats.total_agents == 4
        assert stats.capability_usage.distribution["Read"] == 3


class TestPersistence:
    def test_state_survives_restart(self, settings: Settings, agents_dir: Path) -> None:
        with QueryEngine.from_settings(settings) as first:
            first.rebuild_index(agents_dir)
            first.query("specialist")
            first.query("specialist")

        with QueryEngine.from_settings(settings) as second:
            assert sorted(_names(second.get_all_agents())) == ["plain-helper", "rust-expert"]
            stats = second.get_cache_stats()
            assert stats.size == 1
            assert stats.hits == 0
            assert stats.misses == 0
            assert _names(second.query("specialist")) == ["rust-expert"]
            assert second.get_cache_stats().hits == 1

    def test_save_cache(self, engine: QueryEngine, settings: Settings) -> None:
        engine.query("specialist")
        assert engine.save_cache() is True
        assert Path(settings.cache.path).exists()
