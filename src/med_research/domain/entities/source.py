"""
Source names and the metadata priority table.
"""

from __future__ import annotations

from enum import Enum


class SourceName(Enum):
    """External databases queried during a fan-out. Values are display names."""

    CLINICAL_GUIDELINES = "Clinical Guidelines"
    COCHRANE = "Cochrane Library"
    PUBMED = "PubMed"
    EUROPE_PMC = "Europe PMC"
    CLINICAL_TRIALS = "ClinicalTrials.gov"
    SEMANTIC_SCHOLAR = "Semantic Scholar"
    CROSSREF = "CrossRef"
    OPENALEX = "OpenAlex"
    DOAJ = "DOAJ"
    FDA = "FDA"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | SourceName) -> SourceName:
        """Accept a member, its display name or its enum name (case-insensitive)."""
        if isinstance(value, SourceName):
            return value
        needle = value.strip().lower()
        for member in cls:
            if needle in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown source: {value!r}")


# =============================================================================
# Source priority (lower rank wins metadata conflicts during deduplication)
#
# Specialized clinical-guideline sources first, then curated primary
# literature databases, then trial registries, then general scholarly
# aggregators, and the regulatory label database last.
# =============================================================================

DEFAULT_SOURCE_PRIORITY: tuple[SourceName, ...] = (
    SourceName.CLINICAL_GUIDELINES,
    SourceName.COCHRANE,
    SourceName.PUBMED,
    SourceName.EUROPE_PMC,
    SourceName.CLINICAL_TRIALS,
    SourceName.SEMANTIC_SCHOLAR,
    SourceName.CROSSREF,
    SourceName.OPENALEX,
    SourceName.DOAJ,
    SourceName.FDA,
)


def build_priority_ranks(order: tuple[SourceName, ...] | list[SourceName] | None = None) -> dict[SourceName, int]:
    """
    Turn an ordered source list into a rank table (1 = most preferred).

    Sources missing from ``order`` are ranked after the listed ones, in
    DEFAULT_SOURCE_PRIORITY order, so every source always has a rank.
    """
    ordered = list(order) if order else list(DEFAULT_SOURCE_PRIORITY)
    if len(set(ordered)) != len(ordered):
        raise ValueError("Source priority list contains duplicates")
    for source in DEFAULT_SOURCE_PRIORITY:
        if source not in ordered:
            ordered.append(source)
    return {source: rank for rank, source in enumerate(ordered, start=1)}
