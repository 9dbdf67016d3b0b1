"""
Semantic Scholar adapter - Graph API paper search.

API Documentation: https://api.semanticscholar.org/api-docs/
"""

from __future__ import annotations

import logging
from typing import Any

from med_research.domain.entities import Candidate, SourceName, normalize_pmcid

from .base import HttpSourceAdapter
from .normalize import as_list, clean_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

S2_API_BASE = "https://api.semanticscholar.org/graph/v1"
MAX_LIMIT = 100

# Fields requested per paper
DEFAULT_FIELDS = [
    "paperId",
    "title",
    "abstract",
    "year",
    "authors",
    "venue",
    "publicationVenue",
    "publicationTypes",
    "externalIds",  # Contains DOI, PubMed ID, etc.
    "url",
]

# Semantic Scholar publication types -> PubMed-style names understood by the classifier
PUBLICATION_TYPE_NAMES = {
    "MetaAnalysis": "Meta-Analysis",
    "Review": "Review",
    "ClinicalTrial": "Clinical Trial",
    "CaseReport": "Case Reports",
    "Editorial": "Editorial",
    "LettersAndComments": "Letter",
    "Study": "Study",
}


class SemanticScholarAdapter(HttpSourceAdapter):
    """
    Semantic Scholar search.

    Args:
        api_key: Optional S2 API key (sent as ``x-api-key``)
    """

    source = SourceName.SEMANTIC_SCHOLAR
    _service_name = "Semantic Scholar"

    def __init__(self, api_key: str | None = None, base_url: str = S2_API_BASE, **kwargs: Any) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        super().__init__(base_url=base_url, headers=headers, **kwargs)

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        data = await self._make_request(
            "/paper/search",
            params={
                "query": query,
                "limit": min(limit, MAX_LIMIT),
                "fields": ",".join(DEFAULT_FIELDS),
            },
        )
        return self._require_list(data, "data")

    def _parse_item(self, paper: dict[str, Any], position: int) -> Candidate | None:
        external_ids = paper.get("externalIds") or {}
        venue = paper.get("publicationVenue") or {}
        journal = clean_text(venue.get("name")) if isinstance(venue, dict) else ""
        journal = journal or clean_text(paper.get("venue"))

        extra: list[tuple[str, str]] = []
        pmcid = normalize_pmcid(external_ids.get("PubMedCentral"))
        if pmcid:
            extra.append(("pmcid", pmcid))

        pub_types = [
            PUBLICATION_TYPE_NAMES.get(pt, pt) for pt in as_list(paper.get("publicationTypes")) if isinstance(pt, str)
        ]

        return Candidate(
            title=clean_text(paper.get("title")),
            source=self.source,
            abstract=clean_text(paper.get("abstract")),
            authors=flatten_authors(paper.get("authors")),
            journal=journal or None,
            year=parse_year(paper.get("year")),
            doi=external_ids.get("DOI"),
            pmid=external_ids.get("PubMed"),
            external_ids=tuple(extra),
            url=paper.get("url") or None,
            publication_types=tuple(pub_types),
            source_position=position,
        )
