"""
Clinical Guidelines adapter - PubMed restricted to guideline publication types.
"""

from __future__ import annotations

from med_research.domain.entities import SourceName

from .pubmed import PubMedAdapter

GUIDELINE_FILTER = '(guideline[pt] OR "practice guideline"[pt] OR "consensus development conference"[pt])'


class ClinicalGuidelinesAdapter(PubMedAdapter):
    """Clinical practice guidelines indexed in PubMed."""

    source = SourceName.CLINICAL_GUIDELINES

    def prepare_query(self, query: str) -> str:
        return f"({query}) AND {GUIDELINE_FILTER}"
