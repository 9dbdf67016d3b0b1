"""
CrossRef adapter - /works search through the polite pool.

API Documentation: https://api.crossref.org/swagger-ui/index.html

Best Practices:
- Always include email in User-Agent (polite pool)
- Use mailto: parameter for higher rate limits
"""

from __future__ import annotations

import logging
from typing import Any

from med_research.domain.entities import Candidate, SourceName
from med_research.shared.settings import DEFAULT_EMAIL

from .base import HttpSourceAdapter
from .normalize import clean_text, first_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

CROSSREF_API_BASE = "https://api.crossref.org"
MAX_ROWS = 100

# Date fields in order of preference
DATE_FIELDS = ("published-print", "published-online", "published", "issued", "created")


class CrossRefAdapter(HttpSourceAdapter):
    """
    CrossRef work search.

    Args:
        email: Contact email for polite pool access
    """

    source = SourceName.CROSSREF
    _service_name = "CrossRef"

    def __init__(self, email: str | None = None, base_url: str = CROSSREF_API_BASE, **kwargs: Any) -> None:
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
                "query": query,
                "rows": min(limit, MAX_ROWS),
                "sort": "relevance",
                "order": "desc",
                "mailto": self._email,
            },
        )
        return self._require_list(data, "message", "items")

    def _parse_item(self, work: dict[str, Any], position: int) -> Candidate | None:
        doi = work.get("DOI")
        work_type = work.get("type")
        return Candidate(
            title=first_text(work.get("title")),
            source=self.source,
            abstract=clean_text(work.get("abstract")),
            authors=flatten_authors(work.get("author")),
            journal=first_text(work.get("container-title")) or None,
            year=self._extract_year(work),
            doi=doi,
            url=work.get("URL") or (f"https://doi.org/{doi}" if doi else None),
            publication_types=(work_type,) if isinstance(work_type, str) else (),
            source_position=position,
        )

    @staticmethod
    def _extract_year(work: dict[str, Any]) -> int | None:
        for field in DATE_FIELDS:
            year = parse_year(work.get(field))
            if year:
                return year
        return None
