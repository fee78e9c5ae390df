"""Approximate string matching for agent lookups.

Scoring strategies, tried in order:

1. exact match after trim/lowercase → 1.0
2. query is a substring of the target → ``len(query) / len(target) * 2.0``
   (unclamped, so short queries inside long targets may exceed 1.0)
3. token containment over whitespace/hyphen tokens, averaged over all query
   tokens
4. normalised Levenshtein similarity, returned only above 0.1

The matcher is stateless apart from a bounded memo of edit distances.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import structlog

from agentquery.fields import field_text, normalize_field

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from agentquery.models.agent import AgentRecord

log = structlog.get_logger()

DEFAULT_FIELDS = ("name", "description", "file_identifier", "body")

_SUBSTRING_BOOST = 2.0
_MIN_CHAR_SIMILARITY = 0.1
_MAX_MEMO_ENTRIES = 1000
_MAX_WEIGHT = 0.7
_MEAN_WEIGHT = 0.3


def _tokens(text: str) -> list[str]:
    return text.replace("-", " ").split()


class FuzzyMatcher:
    """Scores how closely a query matches agent fields."""

    def __init__(self, threshold: float = 0.7) -> None:
        self._threshold = threshold
        self._distances: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def threshold(self) -> float:
        return self._threshold

    def set_threshold(self, threshold: float) -> None:
        """Change the floor used by every later call."""
        self._threshold = threshold

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_best(self, query: str, records: Iterable[AgentRecord]) -> AgentRecord | None:
        """Best match by file identifier, or None if nothing reaches the threshold.

        Ties keep the first record encountered.
        """
        threshold = self._threshold
        best: AgentRecord | None = None
        best_score = 0.0
        for record in records:
            score = self.score(query, record.file_identifier)
            if score > best_score and score >= threshold:
                best = record
                best_score = score
        return best

    def find_multiple(
        self, query: str, records: Iterable[AgentRecord], limit: int = 0
    ) -> list[AgentRecord]:
        """All file-identifier matches above threshold, best first."""
        threshold = self._threshold
        scored = [(self.score(query, r.file_identifier), r) for r in records]
        matches = [pair for pair in scored if pair[0] >= threshold]
        return self._rank(matches, limit)

    def score_by_field(self, record: AgentRecord, field: str, query: str) -> float:
        """Score ``query`` against one field of ``record``. Unknown fields score 0."""
        canonical = normalize_field(field)
        if canonical is None:
            return 0.0
        return self.score(query, field_text(record, canonical))

    def multi_field_search(
        self,
        query: str,
        records: Iterable[AgentRecord],
        fields: Sequence[str] | None = None,
        limit: int = 0,
        threshold: float | None = None,
    ) -> list[AgentRecord]:
        """Rank records by a blend of their best and mean non-zero field scores.

        ``threshold`` overrides the matcher's floor for this call only.
        """
        fields = fields or DEFAULT_FIELDS
        floor = self._threshold if threshold is None else threshold

        matches: list[tuple[float, AgentRecord]] = []
        for record in records:
            field_scores = [self.score_by_field(record, f, query) for f in fields]
            hits = [s for s in field_scores if s > 0]
            if not hits:
                continue
            combined = max(hits) * _MAX_WEIGHT + (sum(hits) / len(hits)) * _MEAN_WEIGHT
            if combined >= floor:
                matches.append((combined, record))

        log.debug("fuzzy_search_complete", query=query, matched=len(matches))
        return self._rank(matches, limit)

    @staticmethod
    def _rank(matches: list[tuple[float, AgentRecord]], limit: int) -> list[AgentRecord]:
        ranked = sorted(matches, key=lambda pair: pair[0], reverse=True)
        if limit > 0:
            ranked = ranked[:limit]
        return [record for _, record in ranked]

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(self, query: str, target: str) -> float:
        """Similarity of ``target`` to ``query``; see the module docstring."""
        query = query.strip().lower()
        target = target.strip().lower()

        if not query or not target:
            return 0.0

        if query == target:
            return 1.0

        if query in target:
            return len(query) / len(target) * _SUBSTRING_BOOST

        query_tokens = _tokens(query)
        target_tokens = _tokens(target)
        if not query_tokens:
            return 0.0

        matched = 0
        total = 0.0
        for qt in query_tokens:
            best = 0.0
            for tt in target_tokens:
                if qt in tt:
                    best = max(best, len(qt) / len(tt))
                elif tt in qt:
                    best = max(best, len(tt) / len(qt))
            if best > 0:
                matched += 1
                total += best

        if matched:
            return total / len(query_tokens)

        similarity = self._character_similarity(query, target)
        if similarity > _MIN_CHAR_SIMILARITY:
            return similarity
        return 0.0

    def _character_similarity(self, a: str, b: str) -> float:
        if not a and not b:
            return 1.0
        if not a or not b:
            return 0.0
        distance = self.levenshtein_distance(a, b)
        return max(0.0, 1.0 - distance / max(len(a), len(b)))

    def levenshtein_distance(self, a: str, b: str) -> int:
        """Edit distance, memoised per (a, b) pair."""
        key = f"{a}|{b}"
        with self._lock:
            cached = self._distances.get(key)
        if cached is not None:
            return cached

        if not a:
            return len(b)
        if not b:
            return len(a)

        previous = list(range(len(b) + 1))
        for i, ca in enumerate(a, start=1):
            current = [i]
            for j, cb in enumerate(b, start=1):
                cost = 0 if ca == cb else 1
                current.append(
                    min(
                        previous[j] + 1,  # deletion
                        current[j - 1] + 1,  # insertion
                        previous[j - 1] + cost,  # substitution
                    )
                )
            previous = current
        distance = previous[-1]

        with self._lock:
            if len(self._distances) > _MAX_MEMO_ENTRIES:
                self._distances = {}
            self._distances[key] = distance
        return distance

    def memo_size(self) -> int:
        with self._lock:
            return len(self._distances)
