"""
Domain Entities

Request-scoped value objects for medical literature retrieval.
"""

from __future__ import annotations

from .candidate import (
    EVIDENCE_LABELS,
    EVIDENCE_WEIGHTS,
    Candidate,
    Citation,
    EvidenceTier,
    MergedCandidate,
    ScoredCandidate,
)
from .identifiers import normalize_doi, normalize_nct_id, normalize_pmcid, normalize_pmid
from .outcome import FailureKind, SourceOutcome
from .source import DEFAULT_SOURCE_PRIORITY, SourceName, build_priority_ranks

__all__ = [
    # Pipeline records
    "Candidate",
    "MergedCandidate",
    "ScoredCandidate",
    "Citation",
    # Evidence
    "EvidenceTier",
    "EVIDENCE_WEIGHTS",
    "EVIDENCE_LABELS",
    # Sources
    "SourceName",
    "DEFAULT_SOURCE_PRIORITY",
    "build_priority_ranks",
    "FailureKind",
    "SourceOutcome",
    # Identifiers
    "normalize_doi",
    "normalize_pmid",
    "normalize_nct_id",
    "normalize_pmcid",
]
