"""
Selector - Final ordered, capped citation list.

Ordering keys:
    1. evidence weight (descending)
    2. relevance score (descending)
    3. publication year (descending, unknown last)
    4. source priority rank, then title (deterministic tie-break)

Candidates below the relevance floor are dropped even when the cap is not
reached. When fewer than ``min_citations`` survive, the result is flagged
low-confidence instead of lowering the floor.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from med_research.domain.entities import Citation, ScoredCandidate
from med_research.shared.settings import HARD_MAX_CITATIONS

logger = logging.getLogger(__name__)

DEFAULT_MAX_CITATIONS = 10
DEFAULT_MIN_CITATIONS = 3
DEFAULT_RELEVANCE_FLOOR = 0.3


@dataclass
class SelectionResult:
    """Selector output plus the signals the caller needs."""

    citations: list[Citation] = field(default_factory=list)
    selected: list[ScoredCandidate] = field(default_factory=list)
    low_confidence: bool = False
    excluded_out_of_domain: int = 0
    excluded_below_floor: int = 0
    truncated: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "citations": [c.to_dict() for c in self.citations],
            "low_confidence": self.low_confidence,
            "excluded_out_of_domain": self.excluded_out_of_domain,
            "excluded_below_floor": self.excluded_below_floor,
            "truncated": self.truncated,
        }


def sort_key(candidate: ScoredCandidate) -> tuple:
    return (
        -candidate.evidence_weight,
        -candidate.relevance_score,
        -(candidate.year or 0),
        candidate.source_priority_rank,
        candidate.source_position,
        candidate.title.lower(),
    )


class Selector:
    """
    Applies the relevance floor, the ordering and the cap.

    Args:
        max_citations: Default cap (never above HARD_MAX_CITATIONS)
        min_citations: Fewer survivors than this marks the result low-confidence
        relevance_floor: Minimum relevance score to be cited
    """

    def __init__(
        self,
        max_citations: int = DEFAULT_MAX_CITATIONS,
        min_citations: int = DEFAULT_MIN_CITATIONS,
        relevance_floor: float = DEFAULT_RELEVANCE_FLOOR,
    ) -> None:
        self._max_citations = self._clamp_cap(max_citations)
        self._min_citations = max(0, min_citations)
        self._relevance_floor = relevance_floor

    @property
    def max_citations(self) -> int:
        return self._max_citations

    @staticmethod
    def _clamp_cap(value: int) -> int:
        return max(1, min(int(value), HARD_MAX_CITATIONS))

    def select(self, candidates: Iterable[ScoredCandidate], max_results: int | None = None) -> SelectionResult:
        """
        Select and order citations.

        Args:
            candidates: Scored and classified candidates
            max_results: Per-request cap; clamped to [1, HARD_MAX_CITATIONS]
        """
        cap = self._clamp_cap(max_results) if max_results is not None else self._max_citations
        result = SelectionResult()

        eligible: list[ScoredCandidate] = []
        for candidate in candidates:
            if not candidate.is_in_domain:
                result.excluded_out_of_domain += 1
            elif candidate.relevance_score < self._relevance_floor:
                result.excluded_below_floor += 1
            else:
                eligible.append(candidate)

        eligible.sort(key=sort_key)
        result.selected = eligible[:cap]
        result.truncated = max(0, len(eligible) - cap)
        result.citations = [Citation.from_scored(c) for c in result.selected]
        result.low_confidence = not result.citations or len(result.citations) < min(self._min_citations, cap)

        if result.low_confidence:
            logger.info(
                f"Low-confidence selection: {len(result.citations)} citation(s) "
                f"(out of domain: {result.excluded_out_of_domain}, below floor: {result.excluded_below_floor})"
            )
        return result
