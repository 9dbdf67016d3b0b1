"""
RelevanceScorer - Bounded relevance score and domain gate per candidate.

Scoring pipeline:
1. Domain gate: count distinct medical terms in title+abstract. Below
   ``min_domain_terms`` the candidate is out of domain unless it contains one
   of the query's own medical concepts. Off-domain markers raise the bar to
   ``off_domain_min_terms``. A candidate with no medical term at all is
   always out of domain.
2. Lexical overlap: each query concept earns ``title_weight`` when found in
   the title, else ``abstract_weight`` when found in the abstract.
3. Specificity gate: when too few concepts matched, the score is capped
   below the selector's floor.
4. Intent bonus / penalty for treatment, prevention and diagnosis queries.
5. Clamp to [0, 1].

All thresholds are tunable through ScoringConfig.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from med_research.domain.entities import MergedCandidate, ScoredCandidate

from . import vocabulary as vocab
from .query_builder import QueryBuilder, QueryConcept, QueryIntent, QueryProfile

logger = logging.getLogger(__name__)


@dataclass
class ScoringConfig:
    """Tunable scoring parameters."""

    # Domain gate
    min_domain_terms: int = 2
    off_domain_min_terms: int = 4

    # Lexical overlap
    title_weight: float = 1.0
    abstract_weight: float = 0.6
    overlap_weight: float = 0.75
    density_weight: float = 0.15
    density_saturation: int = 6
    venue_bonus: float = 0.05

    # Specificity gate
    min_match_ratio: float = 0.2
    min_matched_concepts: int = 2
    specificity_cap: float = 0.15

    # Intent
    intent_bonus: float = 0.1
    descriptive_penalty: float = 0.6

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class RelevanceBreakdown:
    """How a score was reached (for logging and tests)."""

    domain_terms: int = 0
    in_domain: bool = False
    overlap: float = 0.0
    match_ratio: float = 0.0
    matched_concepts: tuple[str, ...] = ()
    specificity_capped: bool = False
    intent_bonus: float = 0.0
    descriptive_penalty: bool = False
    score: float = 0.0


class RelevanceScorer:
    """
    Scores MergedCandidates against a query profile.

    Example:
        scorer = RelevanceScorer()
        profile = QueryBuilder().analyze("migraine treatment")
        scored = scorer.score(candidate, profile)
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or ScoringConfig()

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def score(self, candidate: MergedCandidate, query: QueryProfile | str) -> ScoredCandidate:
        """Return a ScoredCandidate with relevance score and domain flag."""
        profile = self._as_profile(query)
        breakdown = self.explain(candidate, profile)
        return ScoredCandidate.from_merged(
            candidate,
            relevance_score=breakdown.score,
            is_in_domain=breakdown.in_domain,
            matched_terms=breakdown.matched_concepts,
        )

    def score_all(self, candidates: list[MergedCandidate], query: QueryProfile | str) -> list[ScoredCandidate]:
        profile = self._as_profile(query)
        return [self.score(candidate, profile) for candidate in candidates]

    def explain(self, candidate: MergedCandidate, profile: QueryProfile) -> RelevanceBreakdown:
        cfg = self._config
        title = candidate.title.lower()
        abstract = candidate.abstract.lower()
        text = f"{title} {abstract}"
        title_tokens = vocab.token_set(title)
        abstract_tokens = vocab.token_set(abstract)
        tokens = title_tokens | abstract_tokens

        breakdown = RelevanceBreakdown()

        # Step 1: Domain gate
        domain_terms = vocab.matching_terms(vocab.MEDICAL_TERMS, text, tokens)
        breakdown.domain_terms = len(domain_terms)
        breakdown.in_domain = self._passes_domain_gate(domain_terms, profile, text, tokens)
        if not breakdown.in_domain:
            return breakdown

        # Step 2: Lexical overlap
        concepts = self._scoring_concepts(profile)
        credit = 0.0
        matched: list[str] = []
        for concept in concepts:
            if self._concept_in(concept, title, title_tokens):
                credit += cfg.title_weight
                matched.append(concept.term)
            elif self._concept_in(concept, abstract, abstract_tokens):
                credit += cfg.abstract_weight
                matched.append(concept.term)

        overlap = credit / (len(concepts) * cfg.title_weight) if concepts else 0.0
        density = min(len(domain_terms) / cfg.density_saturation, 1.0)
        score = cfg.overlap_weight * overlap + cfg.density_weight * density
        if candidate.journal and any(m in candidate.journal.lower() for m in vocab.MEDICAL_VENUE_MARKERS):
            score += cfg.venue_bonus

        breakdown.overlap = overlap
        breakdown.matched_concepts = tuple(matched)
        breakdown.match_ratio = len(matched) / len(concepts) if concepts else 0.0

        # Step 3: Specificity gate
        required = 1 if profile.is_short else min(cfg.min_matched_concepts, len(concepts))
        if breakdown.match_ratio < cfg.min_match_ratio or len(matched) < required:
            breakdown.specificity_capped = True
            breakdown.score = min(score, cfg.specificity_cap)
            return breakdown

        # Step 4: Intent bonus / penalty
        score = self._apply_intent(score, profile.intent, text, tokens, breakdown)

        # Step 5: Clamp
        breakdown.score = min(1.0, max(0.0, score))
        return breakdown

    def _passes_domain_gate(
        self,
        domain_terms: set[str],
        profile: QueryProfile,
        text: str,
        tokens: set[str],
    ) -> bool:
        if not domain_terms:
            return False

        required = self._config.min_domain_terms
        if vocab.matching_terms(vocab.OFF_DOMAIN_TERMS, text, tokens):
            required = self._config.off_domain_min_terms
        if len(domain_terms) >= required:
            return True

        # Override: the candidate names one of the query's own medical concepts
        return any(vocab.contains_term(term, text, tokens) for term in profile.medical_terms)

    def _apply_intent(
        self,
        score: float,
        intent: QueryIntent,
        text: str,
        tokens: set[str],
        breakdown: RelevanceBreakdown,
    ) -> float:
        if intent is QueryIntent.GENERAL:
            return score

        intent_vocab = vocab.INTENT_CANDIDATE_VOCABULARY.get(intent.value, frozenset())
        if vocab.matching_terms(intent_vocab, text, tokens):
            breakdown.intent_bonus = self._config.intent_bonus
            score += self._config.intent_bonus

        if intent.is_interventional:
            interventional_vocab = (
                vocab.INTENT_CANDIDATE_VOCABULARY["treatment"] | vocab.INTENT_CANDIDATE_VOCABULARY["prevention"]
            )
            descriptive = vocab.matching_terms(vocab.DESCRIPTIVE_TERMS, text, tokens)
            if descriptive and not vocab.matching_terms(interventional_vocab, text, tokens):
                breakdown.descriptive_penalty = True
                score *= self._config.descriptive_penalty
        return score

    @staticmethod
    def _scoring_concepts(profile: QueryProfile) -> list[QueryConcept]:
        # Intent words are rewarded by the intent bonus, not by overlap, unless
        # they are the whole question.
        subject = [c for c in profile.concepts if not c.is_intent]
        return subject or list(profile.concepts)

    @staticmethod
    def _concept_in(concept: QueryConcept, text: str, tokens: set[str]) -> bool:
        return any(vocab.contains_term(form, text, tokens) for form in concept.forms)

    @staticmethod
    def _as_profile(query: QueryProfile | str) -> QueryProfile:
        if isinstance(query, QueryProfile):
            return query
        return QueryBuilder().analyze(QueryBuilder.validate(query))
