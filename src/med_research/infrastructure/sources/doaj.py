"""
DOAJ adapter - Directory of Open Access Journals article search.

API Documentation: https://doaj.org/api/docs
No API key required. The query is part of the URL path.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from med_research.domain.entities import Candidate, SourceName

from .base import HttpSourceAdapter
from .normalize import as_list, clean_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

DOAJ_API_BASE = "https://doaj.org/api"
MAX_PAGE_SIZE = 100


class DOAJAdapter(HttpSourceAdapter):
    """Open access journal articles."""

    source = SourceName.DOAJ
    _service_name = "DOAJ"

    def __init__(self, base_url: str = DOAJ_API_BASE, **kwargs: Any) -> None:
        super().__init__(base_url=base_url, headers={"Accept": "application/json"}, **kwargs)

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        path = f"/search/articles/{urllib.parse.quote(query, safe='')}"
        data = await self._make_request(path, params={"pageSize": min(limit, MAX_PAGE_SIZE)})
        return self._require_list(data, "results")

    def _parse_item(self, article: dict[str, Any], position: int) -> Candidate | None:
        bibjson = article["bibjson"]
        identifiers = [i for i in as_list(bibjson.get("identifier")) if isinstance(i, dict)]
        links = [link for link in as_list(bibjson.get("link")) if isinstance(link, dict)]

        doi = next((i.get("id") for i in identifiers if str(i.get("type", "")).lower() == "doi"), None)
        fulltext = next((link.get("url") for link in links if link.get("type") == "fulltext"), None)
        journal = bibjson.get("journal") or {}

        return Candidate(
            title=clean_text(bibjson.get("title")),
            source=self.source,
            abstract=clean_text(bibjson.get("abstract")),
            authors=flatten_authors(bibjson.get("author")),
            journal=clean_text(journal.get("title")) or None,
            year=parse_year(bibjson.get("year")),
            doi=doi,
            url=fulltext or (f"https://doaj.org/article/{article['id']}" if article.get("id") else None),
            source_position=position,
        )
