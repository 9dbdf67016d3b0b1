"""
ResearchPipeline - query in, ordered citations out.

    query -> QueryBuilder -> FanOutCoordinator -> Deduplicator
          -> RelevanceScorer -> EvidenceClassifier -> Selector

Only two errors leave ``research()``: InvalidQueryError for a bad query and
ResearchSourcesUnavailableError when every source failed. Everything else is
reported through ``degraded_sources`` and ``low_confidence``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from med_research.domain.entities import Candidate, Citation, SourceOutcome
from med_research.shared.exceptions import ResearchSourcesUnavailableError

from .deduplicator import Deduplicator
from .evidence_classifier import EvidenceClassifier
from .fanout import FanOutCoordinator
from .query_builder import QueryBuilder, QueryPlan
from .relevance_scorer import RelevanceScorer
from .selector import Selector

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """Candidate counts per stage for one run."""

    candidates: int = 0
    merged: int = 0
    in_domain: int = 0
    citations: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": self.candidates,
            "merged": self.merged,
            "in_domain": self.in_domain,
            "citations": self.citations,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


@dataclass
class ResearchResult:
    """What the caller gets back."""

    citations: list[Citation] = field(default_factory=list)
    degraded_sources: list[str] = field(default_factory=list)
    low_confidence: bool = False
    plan: QueryPlan | None = None
    outcomes: list[SourceOutcome] = field(default_factory=list)
    stats: PipelineStats = field(default_factory=PipelineStats)

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing shape."""
        return {
            "citations": [c.to_dict() for c in self.citations],
            "degradedSources": list(self.degraded_sources),
            "lowConfidence": self.low_confidence,
        }


class ResearchPipeline:
    """
    Wires the stages together. Every stage is injectable.

    Example:
        pipeline = ResearchPipeline(coordinator=FanOutCoordinator(adapters))
        result = await pipeline.research("migraine treatment", max_results=5)
    """

    def __init__(
        self,
        coordinator: FanOutCoordinator,
        query_builder: QueryBuilder | None = None,
        deduplicator: Deduplicator | None = None,
        scorer: RelevanceScorer | None = None,
        classifier: EvidenceClassifier | None = None,
        selector: Selector | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._query_builder = query_builder or QueryBuilder()
        self._deduplicator = deduplicator or Deduplicator()
        self._scorer = scorer or RelevanceScorer()
        self._classifier = classifier or EvidenceClassifier()
        self._selector = selector or Selector()

    @property
    def sources(self) -> list[str]:
        return [source.value for source in self._coordinator.sources]

    async def research(self, query: str, max_results: int | None = None) -> ResearchResult:
        """
        Run the full retrieval and ranking pipeline for one question.

        Raises:
            InvalidQueryError: Empty or oversized query
            ResearchSourcesUnavailableError: Every source failed or timed out
        """
        started = time.perf_counter()
        plan = self._query_builder.build(query, self._coordinator.sources)

        outcomes = await self._coordinator.run(plan)
        degraded = [o.source.value for o in outcomes if o.degraded]
        if not outcomes or len(degraded) == len(outcomes):
            logger.error(f"All sources failed for query {plan.profile.normalized_query!r}: {degraded}")
            raise ResearchSourcesUnavailableError(degraded)

        candidates: list[Candidate] = [c for o in outcomes if o.ok for c in o.candidates]
        merged = self._deduplicator.deduplicate(candidates)
        scored = self._scorer.score_all(merged, plan.profile)
        in_domain = [c for c in scored if c.is_in_domain]
        classified = self._classifier.classify_all(in_domain)
        selection = self._selector.select(classified, max_results)

        stats = PipelineStats(
            candidates=len(candidates),
            merged=len(merged),
            in_domain=len(in_domain),
            citations=len(selection.citations),
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )
        logger.info(
            f"Research {plan.profile.normalized_query!r}: "
            f"{len(outcomes) - len(degraded)}/{len(outcomes)} sources ok, "
            f"{stats.candidates} candidates -> {stats.merged} merged -> "
            f"{stats.in_domain} in domain -> {stats.citations} cited "
            f"({stats.elapsed_ms:.0f}ms)"
        )

        return ResearchResult(
            citations=selection.citations,
            degraded_sources=degraded,
            low_confidence=selection.low_confidence,
            plan=plan,
            outcomes=outcomes,
            stats=stats,
        )
