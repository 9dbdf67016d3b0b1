"""
Europe PMC adapter - REST search API (resultType=core, JSON).

API Documentation: https://europepmc.org/RestfulWebService
"""

from __future__ import annotations

import logging
from typing import Any

from med_research.domain.entities import Candidate, SourceName, normalize_pmcid

from .base import HttpSourceAdapter
from .normalize import as_list, clean_text, flatten_authors, parse_year, split_author_string

logger = logging.getLogger(__name__)

EUROPE_PMC_BASE_URL = "https://www.ebi.ac.uk/europepmc/webservices/rest"
MAX_PAGE_SIZE = 100


class EuropePMCAdapter(HttpSourceAdapter):
    """Europe PMC literature search."""

    source = SourceName.EUROPE_PMC
    _service_name = "Europe PMC"

    def __init__(self, base_url: str = EUROPE_PMC_BASE_URL, **kwargs: Any) -> None:
        super().__init__(base_url=base_url, headers={"Accept": "application/json"}, **kwargs)

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        data = await self._make_request(
            "/search",
            params={
                "query": query,
                "format": "json",
                "resultType": "core",
                "pageSize": min(limit, MAX_PAGE_SIZE),
            },
        )
        return self._require_list(data, "resultList", "result")

    def _parse_item(self, result: dict[str, Any], position: int) -> Candidate | None:
        authors = flatten_authors((result.get("authorList") or {}).get("author"))
        if not authors:
            authors = split_author_string(result.get("authorString"))

        journal_info = result.get("journalInfo") or {}
        journal = clean_text((journal_info.get("journal") or {}).get("title")) or clean_text(result.get("journalTitle"))

        pmcid = normalize_pmcid(result.get("pmcid"))
        pub_types = as_list((result.get("pubTypeList") or {}).get("pubType"))

        return Candidate(
            title=clean_text(result.get("title")),
            source=self.source,
            abstract=clean_text(result.get("abstractText")),
            authors=authors,
            journal=journal or None,
            year=parse_year(result.get("pubYear")) or parse_year(journal_info.get("yearOfPublication")),
            doi=result.get("doi"),
            pmid=result.get("pmid"),
            external_ids=(("pmcid", pmcid),) if pmcid else (),
            url=self._article_url(result),
            publication_types=tuple(clean_text(pt) for pt in pub_types if pt),
            source_position=position,
        )

    @staticmethod
    def _article_url(result: dict[str, Any]) -> str | None:
        source, record_id = result.get("source"), result.get("id")
        if source and record_id:
            return f"https://europepmc.org/article/{source}/{record_id}"
        if result.get("doi"):
            return f"https://doi.org/{result['doi']}"
        return None
