"""
FDA adapter - openFDA drug label search.

API Documentation: https://open.fda.gov/apis/drug/label/

openFDA answers 404 when nothing matches; that is an empty result, not a
failure. Labels are regulatory documents, so they carry the "Drug Label"
publication type and rank last on metadata conflicts.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from med_research.domain.entities import Candidate, SourceName

from .base import HttpSourceAdapter
from .base_client import _CONTINUE
from .normalize import as_list, clean_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

OPENFDA_API_BASE = "https://api.fda.gov"
MAX_LIMIT = 100
MAX_ABSTRACT_CHARS = 2000
LABEL_TYPE = "Drug Label"


class FDAAdapter(HttpSourceAdapter):
    """
    openFDA drug labels.

    Args:
        api_key: Optional openFDA key (raises the daily quota)
    """

    source = SourceName.FDA
    _service_name = "FDA"

    def __init__(self, api_key: str | None = None, base_url: str = OPENFDA_API_BASE, **kwargs: Any) -> None:
        self._api_key = api_key
        super().__init__(base_url=base_url, headers={"Accept": "application/json"}, **kwargs)

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        data = await self._make_request(
            "/drug/label.json",
            params={
                "search": query,
                "limit": min(limit, MAX_LIMIT),
                "api_key": self._api_key,
            },
        )
        return self._require_list(data, "results")

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (no matching labels)."""
        if response.status_code == 404:
            logger.debug("FDA: no matching labels")
            return {"results": []}
        return _CONTINUE

    def _parse_item(self, label: dict[str, Any], position: int) -> Candidate | None:
        openfda = label.get("openfda") or {}
        brand = self._first(openfda.get("brand_name"))
        generic = self._first(openfda.get("generic_name"))
        if not (brand or generic):
            return None

        name = f"{brand} ({generic})" if brand and generic and brand.lower() != generic.lower() else brand or generic
        sections = [
            clean_text(label.get("indications_and_usage")),
            clean_text(label.get("warnings_and_cautions") or label.get("warnings")),
        ]
        abstract = " ".join(s for s in sections if s)[:MAX_ABSTRACT_CHARS]
        set_id = label.get("set_id")

        return Candidate(
            title=f"{name}: FDA drug label",
            source=self.source,
            abstract=abstract,
            authors=flatten_authors(as_list(openfda.get("manufacturer_name"))[:1]),
            journal="FDA Drug Label",
            year=parse_year(label.get("effective_time")),
            external_ids=(("fda_set_id", set_id),) if isinstance(set_id, str) and set_id else (),
            url=f"https://dailymed.nlm.nih.gov/dailymed/lookup.cfm?setid={set_id}" if set_id else None,
            publication_types=(LABEL_TYPE,),
            source_position=position,
        )

    @staticmethod
    def _first(value: Any) -> str:
        for item in as_list(value):
            text = clean_text(item)
            if text:
                return text
        return ""
