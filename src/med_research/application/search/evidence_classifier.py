"""
EvidenceClassifier - Pattern-based evidence hierarchy tiers.

Tier order (best first):
    1A systematic review / meta-analysis
    1B clinical practice guideline
    2  randomized controlled trial
    3  cohort / case-control
    4  cross-sectional
    5  case report / expert opinion (also the default)

Title, venue and source-declared publication types are authoritative. The
abstract is only consulted for study-design patterns when those give no
answer, because abstracts routinely mention other designs ("previous
meta-analyses found...").
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from med_research.domain.entities import EvidenceTier, ScoredCandidate, SourceName

from . import vocabulary as vocab

logger = logging.getLogger(__name__)


def _compile(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


class EvidenceClassifier:
    """
    Assigns an EvidenceTier to scored candidates.

    Example:
        >>> classifier = EvidenceClassifier()
        >>> classifier.classify_text("Systematic review and meta-analysis of SGLT2 inhibitors")
        <EvidenceTier.TIER_1A: '1A'>
    """

    # Checked top tier first; first match wins
    TITLE_RULES: tuple[tuple[EvidenceTier, tuple[re.Pattern[str], ...]], ...] = (
        (EvidenceTier.TIER_1A, _compile(vocab.SYSTEMATIC_REVIEW_PATTERNS)),
        (EvidenceTier.TIER_1B, _compile(vocab.GUIDELINE_PATTERNS)),
        (EvidenceTier.TIER_2, _compile(vocab.RCT_PATTERNS)),
        (EvidenceTier.TIER_3, _compile(vocab.OBSERVATIONAL_PATTERNS)),
        (EvidenceTier.TIER_4, _compile(vocab.CROSS_SECTIONAL_PATTERNS)),
        (EvidenceTier.TIER_5, _compile(vocab.CASE_REPORT_PATTERNS)),
    )

    # Abstracts are only trusted for primary study designs
    ABSTRACT_RULES: tuple[tuple[EvidenceTier, tuple[re.Pattern[str], ...]], ...] = (
        (EvidenceTier.TIER_2, _compile(vocab.RCT_PATTERNS)),
        (EvidenceTier.TIER_3, _compile(vocab.OBSERVATIONAL_PATTERNS)),
        (EvidenceTier.TIER_4, _compile(vocab.CROSS_SECTIONAL_PATTERNS)),
    )

    REGISTRY_PATTERNS = _compile(vocab.TRIAL_REGISTRY_PATTERNS)

    PUBLICATION_TYPE_TIERS: dict[str, EvidenceTier] = {
        name: EvidenceTier(code) for name, code in vocab.PUBLICATION_TYPE_TIERS.items()
    }

    # Sources whose records have a known design regardless of wording
    SOURCE_TIERS: dict[SourceName, EvidenceTier] = {
        SourceName.COCHRANE: EvidenceTier.TIER_1A,
        SourceName.CLINICAL_GUIDELINES: EvidenceTier.TIER_1B,
    }

    def classify(self, candidate: ScoredCandidate) -> ScoredCandidate:
        """Return a copy of ``candidate`` with its evidence tier set."""
        tier = self.classify_text(
            candidate.title,
            abstract=candidate.abstract,
            venue=candidate.journal,
            publication_types=candidate.publication_types,
            external_ids=[value for _, value in candidate.external_ids],
            source=candidate.source,
        )
        return candidate.with_evidence(tier)

    def classify_all(self, candidates: list[ScoredCandidate]) -> list[ScoredCandidate]:
        return [self.classify(candidate) for candidate in candidates]

    def classify_text(
        self,
        title: str,
        *,
        abstract: str = "",
        venue: str | None = None,
        publication_types: Iterable[str] = (),
        external_ids: Iterable[str] = (),
        source: SourceName | None = None,
    ) -> EvidenceTier:
        """Classify from raw metadata. Never raises; unknown designs get the lowest tier."""
        candidates: list[EvidenceTier] = []

        headline = f"{title or ''} {venue or ''}"
        for tier, patterns in self.TITLE_RULES:
            if any(p.search(headline) for p in patterns):
                candidates.append(tier)
                break

        for pub_type in publication_types:
            tier = self.PUBLICATION_TYPE_TIERS.get(pub_type.strip().lower())
            if tier is not None:
                candidates.append(tier)

        if source in self.SOURCE_TIERS:
            candidates.append(self.SOURCE_TIERS[source])

        if candidates:
            return self._best(candidates)

        registry_text = " ".join([abstract or "", *external_ids])
        if any(p.search(registry_text) for p in self.REGISTRY_PATTERNS):
            return EvidenceTier.TIER_2

        for tier, patterns in self.ABSTRACT_RULES:
            if any(p.search(abstract or "") for p in patterns):
                return tier

        return EvidenceTier.lowest()

    @staticmethod
    def _best(tiers: list[EvidenceTier]) -> EvidenceTier:
        return max(tiers, key=lambda t: t.weight)
