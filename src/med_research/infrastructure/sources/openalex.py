"""
OpenAlex adapter - /works search.

API Documentation: https://docs.openalex.org/
"""

from __future__ import annotations

import logging
from typing import Any

from med_research.domain.entities import Candidate, SourceName, normalize_pmcid
from med_research.shared.settings import DEFAULT_EMAIL

from .base import HttpSourceAdapter
from .normalize import clean_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

OA_API_BASE = "https://api.openalex.org"
MAX_PER_PAGE = 200
MAX_AUTHORS = 10


def rebuild_abstract(abstract_index: Any) -> str:
    """
    Rebuild an abstract from OpenAlex's inverted index ``{"word": [positions]}``.
    """
    if not isinstance(abstract_index, dict) or not abstract_index:
        return ""
    word_positions = []
    for word, positions in abstract_index.items():
        if not isinstance(positions, list):
            continue
        for pos in positions:
            if isinstance(pos, int):
                word_positions.append((pos, word))
    word_positions.sort(key=lambda x: x[0])
    return clean_text(" ".join(word for _, word in word_positions))


class OpenAlexAdapter(HttpSourceAdapter):
    """
    OpenAlex work search.

    Args:
        email: Contact email for the polite pool
    """

    source = SourceName.OPENALEX
    _service_name = "OpenAlex"

    def __init__(self, email: str | None = None, base_url: str = OA_API_BASE, **kwargs: Any) -> None:
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            base_url=base_url,
            headers={
                "User-Agent": f"med-research-pipeline/0.1 (mailto:{self._email})",
                "Accept": "application/json",
            },
            **kwargs,
        )

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        data = await self._make_request(
            "/works",
            params={
                "search": query,
                "per_page": min(limit, MAX_PER_PAGE),
                "mailto": self._email,
            },
        )
        return self._require_list(data, "results")

    def _parse_item(self, work: dict[str, Any], position: int) -> Candidate | None:
        ids = work.get("ids") or {}
        pmcid = normalize_pmcid((ids.get("pmcid") or "").rstrip("/").rsplit("/", 1)[-1] or None)

        primary_location = work.get("primary_location") or {}
        venue = primary_location.get("source") or {}
        work_type = work.get("type")
        doi = ids.get("doi") or work.get("doi")

        return Candidate(
            title=clean_text(work.get("title") or work.get("display_name")),
            source=self.source,
            abstract=rebuild_abstract(work.get("abstract_inverted_index")),
            authors=flatten_authors(work.get("authorships"), limit=MAX_AUTHORS),
            journal=clean_text(venue.get("display_name")) or None,
            year=parse_year(work.get("publication_year")),
            doi=doi,
            pmid=ids.get("pmid"),
            external_ids=(("pmcid", pmcid),) if pmcid else (),
            url=primary_location.get("landing_page_url") or work.get("id"),
            publication_types=(work_type,) if isinstance(work_type, str) else (),
            source_position=position,
        )
