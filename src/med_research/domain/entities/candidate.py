"""
Request-scoped value objects flowing through the retrieval pipeline.

    Candidate -> MergedCandidate -> ScoredCandidate -> Citation

Every record is frozen; each stage derives a new record instead of mutating
the one it received, so concurrently produced source results can be shared
without copying.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .identifiers import normalize_doi, normalize_pmid
from .source import SourceName

_SURNAME_PARTICLES = {"van", "von", "der", "de", "da", "del", "di", "la", "le"}


class EvidenceTier(Enum):
    """Evidence hierarchy tier (simplified Oxford CEBM). Declared best first."""

    TIER_1A = "1A"  # Systematic reviews, meta-analyses
    TIER_1B = "1B"  # Clinical practice guidelines
    TIER_2 = "2"    # Randomized controlled trials
    TIER_3 = "3"    # Cohort, case-control
    TIER_4 = "4"    # Cross-sectional, surveys
    TIER_5 = "5"    # Case reports, expert opinion, unclassified

    @property
    def weight(self) -> int:
        return EVIDENCE_WEIGHTS[self]

    @property
    def label(self) -> str:
        return EVIDENCE_LABELS[self]

    @classmethod
    def lowest(cls) -> EvidenceTier:
        return cls.TIER_5


# Weights dominate relevance scores (which live in [0, 1]) in the final sort.
# Top and bottom differ by two orders of magnitude.
EVIDENCE_WEIGHTS: dict[EvidenceTier, int] = {
    EvidenceTier.TIER_1A: 1000,
    EvidenceTier.TIER_1B: 500,
    EvidenceTier.TIER_2: 250,
    EvidenceTier.TIER_3: 100,
    EvidenceTier.TIER_4: 50,
    EvidenceTier.TIER_5: 10,
}

EVIDENCE_LABELS: dict[EvidenceTier, str] = {
    EvidenceTier.TIER_1A: "Level 1A: Systematic review / meta-analysis",
    EvidenceTier.TIER_1B: "Level 1B: Clinical practice guideline",
    EvidenceTier.TIER_2: "Level 2: Randomized controlled trial",
    EvidenceTier.TIER_3: "Level 3: Cohort / case-control study",
    EvidenceTier.TIER_4: "Level 4: Cross-sectional study",
    EvidenceTier.TIER_5: "Level 5: Case report / expert opinion",
}


@dataclass(frozen=True, kw_only=True)
class Candidate:
    """
    One paper/document as returned by one source, post-normalization.

    Attributes:
        title: Non-empty title
        source: Adapter that produced the record
        abstract: Plain-text abstract (may be empty)
        authors: Ordered display names (plain strings only)
        journal: Journal or venue name
        year: Publication year
        doi: Normalized (lowercase, prefix-free) DOI
        pmid: PubMed ID
        external_ids: Other strong ids as (kind, value) pairs, e.g. ("nct", "NCT01234567")
        url: Landing page
        publication_types: Source-declared study/publication types
        source_position: Position in the source's own relevance ordering
    """

    title: str
    source: SourceName
    abstract: str = ""
    authors: tuple[str, ...] = ()
    journal: str | None = None
    year: int | None = None
    doi: str | None = None
    pmid: str | None = None
    external_ids: tuple[tuple[str, str], ...] = ()
    url: str | None = None
    publication_types: tuple[str, ...] = ()
    source_position: int = 0

    def __post_init__(self) -> None:
        title = self.title.strip() if isinstance(self.title, str) else ""
        if not title:
            raise ValueError("Candidate title must be non-empty")
        object.__setattr__(self, "title", title)

        authors = tuple(self.authors)
        if not all(isinstance(name, str) and name for name in authors):
            raise TypeError("Candidate authors must be non-empty strings")
        object.__setattr__(self, "authors", authors)
        object.__setattr__(self, "abstract", self.abstract or "")
        object.__setattr__(self, "doi", normalize_doi(self.doi) if self.doi else None)
        object.__setattr__(self, "pmid", normalize_pmid(self.pmid) if self.pmid else None)
        object.__setattr__(self, "external_ids", tuple((k.lower(), v) for k, v in self.external_ids))
        object.__setattr__(self, "publication_types", tuple(self.publication_types))

    @property
    def has_strong_id(self) -> bool:
        return bool(self.doi or self.pmid or self.external_ids)

    @property
    def first_author_surname(self) -> str:
        """Lowercased surname of the first author ("" when unknown)."""
        if not self.authors:
            return ""
        name = self.authors[0].strip()
        if "," in name:
            return name.split(",", 1)[0].strip().lower()
        parts = [p for p in re.split(r"\s+", name) if p]
        # PubMed style "Smith J" / "Smith JA": trailing initials follow the surname
        if len(parts) >= 2 and parts[-1].isupper() and len(parts[-1]) <= 3:
            return parts[0].lower()
        for part in reversed(parts):
            if part.lower() not in _SURNAME_PARTICLES:
                return part.strip(".").lower()
        return parts[-1].lower() if parts else ""

    def external_id(self, kind: str) -> str | None:
        kind = kind.lower()
        for key, value in self.external_ids:
            if key == kind:
                return value
        return None

    @property
    def best_identifier(self) -> str:
        """Best display identifier: DOI > PMID > other strong id > URL."""
        if self.doi:
            return f"doi:{self.doi}"
        if self.pmid:
            return f"PMID:{self.pmid}"
        if self.external_ids:
            kind, value = self.external_ids[0]
            return f"{kind.upper()}:{value}"
        return self.url or ""

    @property
    def searchable_text(self) -> str:
        """Lowercased title + abstract used by the scorer and classifier."""
        return f"{self.title} {self.abstract}".lower()


def _carry_fields(record: Candidate, target: type) -> dict[str, Any]:
    names = {f.name for f in dataclasses.fields(target)}
    return {f.name: getattr(record, f.name) for f in dataclasses.fields(record) if f.name in names}


@dataclass(frozen=True, kw_only=True)
class MergedCandidate(Candidate):
    """
    Deduplicated representative of one or more Candidates.

    Metadata always comes from the contributing candidate with the lowest
    ``source_priority_rank``.
    """

    contributing_sources: frozenset[SourceName] = field(default_factory=frozenset)
    source_priority_rank: int = 0
    merged_count: int = 1

    def __post_init__(self) -> None:
        super().__post_init__()
        sources = frozenset(self.contributing_sources) or frozenset({self.source})
        if self.source not in sources:
            raise ValueError("Winning source must be one of the contributing sources")
        object.__setattr__(self, "contributing_sources", sources)

    @classmethod
    def singleton(cls, candidate: Candidate, rank: int) -> MergedCandidate:
        sources = getattr(candidate, "contributing_sources", None) or frozenset({candidate.source})
        return cls(
            **_carry_fields(candidate, Candidate),
            contributing_sources=sources,
            source_priority_rank=rank,
        )


@dataclass(frozen=True, kw_only=True)
class ScoredCandidate(MergedCandidate):
    """
    MergedCandidate plus relevance and evidence scoring.

    Out-of-domain records always carry a zero score.
    """

    relevance_score: float = 0.0
    is_in_domain: bool = True
    evidence_tier: EvidenceTier = EvidenceTier.TIER_5
    matched_terms: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        score = min(1.0, max(0.0, float(self.relevance_score)))
        if not self.is_in_domain:
            score = 0.0
        object.__setattr__(self, "relevance_score", score)

    @property
    def evidence_weight(self) -> int:
        return self.evidence_tier.weight

    @classmethod
    def from_merged(cls, merged: MergedCandidate, **scoring: Any) -> ScoredCandidate:
        return cls(**_carry_fields(merged, MergedCandidate), **scoring)

    def with_evidence(self, tier: EvidenceTier) -> ScoredCandidate:
        return dataclasses.replace(self, evidence_tier=tier)


@dataclass(frozen=True)
class Citation:
    """Display-ready citation handed to the answer synthesizer and the caller."""

    title: str
    authors: tuple[str, ...]
    year: int | None
    journal: str | None
    identifier: str
    evidence_tier: str
    evidence_level: str
    relevance_score: float
    url: str | None = None
    doi: str | None = None
    pmid: str | None = None
    sources: tuple[str, ...] = ()

    @classmethod
    def from_scored(cls, scored: ScoredCandidate) -> Citation:
        sources = tuple(sorted((s.value for s in scored.contributing_sources)))
        return cls(
            title=scored.title,
            authors=tuple(a for a in scored.authors if isinstance(a, str)),
            year=scored.year,
            journal=scored.journal,
            identifier=scored.best_identifier,
            evidence_tier=scored.evidence_tier.label,
            evidence_level=scored.evidence_tier.value,
            relevance_score=round(scored.relevance_score, 4),
            url=scored.url,
            doi=scored.doi,
            pmid=scored.pmid,
            sources=sources,
        )

    @property
    def author_string(self) -> str:
        """Short author string: 'A', 'A and B', or 'A et al.'"""
        if not self.authors:
            return "Unknown authors"
        if len(self.authors) == 1:
            return self.authors[0]
        if len(self.authors) == 2:
            return f"{self.authors[0]} and {self.authors[1]}"
        return f"{self.authors[0]} et al."

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "authors": list(self.authors),
            "year": self.year,
            "journal": self.journal,
            "identifier": self.identifier,
            "evidence_tier": self.evidence_tier,
            "evidence_level": self.evidence_level,
            "relevance_score": self.relevance_score,
            "url": self.url,
            "doi": self.doi,
            "pmid": self.pmid,
            "sources": list(self.sources),
        }
