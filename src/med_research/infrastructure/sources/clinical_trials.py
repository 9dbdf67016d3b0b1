"""
ClinicalTrials.gov adapter - API v2 study search.

API Documentation: https://clinicaltrials.gov/data-api/api

Trials carry their NCT id as a strong identifier. The study design is
translated into PubMed-style publication types so the evidence classifier
can grade registry records the same way as articles.
"""

from __future__ import annotations

import logging
from typing import Any

from med_research.domain.entities import Candidate, SourceName, normalize_nct_id

from .base import HttpSourceAdapter
from .normalize import as_list, clean_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

# Base URL for ClinicalTrials.gov API v2
BASE_URL = "https://clinicaltrials.gov/api/v2"
MAX_PAGE_SIZE = 50
REGISTRY_NAME = "ClinicalTrials.gov"

PHASE_TYPES = {
    "PHASE3": "Clinical Trial, Phase III",
    "PHASE4": "Clinical Trial, Phase IV",
}


class ClinicalTrialsAdapter(HttpSourceAdapter):
    """Registered clinical studies."""

    source = SourceName.CLINICAL_TRIALS
    _service_name = "ClinicalTrials.gov"

    def __init__(self, base_url: str = BASE_URL, **kwargs: Any) -> None:
        super().__init__(base_url=base_url, headers={"Accept": "application/json"}, **kwargs)

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        data = await self._make_request(
            "/studies",
            params={
                "query.term": query,
                "pageSize": min(limit, MAX_PAGE_SIZE),
                "format": "json",
            },
        )
        return self._require_list(data, "studies")

    def _parse_item(self, study: dict[str, Any], position: int) -> Candidate | None:
        protocol = study["protocolSection"]
        id_module = protocol.get("identificationModule", {})
        status_module = protocol.get("statusModule", {})
        design_module = protocol.get("designModule", {})
        conditions_module = protocol.get("conditionsModule", {})
        description_module = protocol.get("descriptionModule", {})

        nct_id = normalize_nct_id(id_module.get("nctId"))
        if nct_id is None:
            return None

        conditions = [c for c in as_list(conditions_module.get("conditions")) if isinstance(c, str)]
        summary = clean_text(description_module.get("briefSummary"))
        if conditions:
            summary = f"{summary} Conditions: {', '.join(conditions)}.".strip()

        year = parse_year((status_module.get("startDateStruct") or {}).get("date")) or parse_year(
            (status_module.get("studyFirstPostDateStruct") or {}).get("date")
        )

        return Candidate(
            title=clean_text(id_module.get("briefTitle") or id_module.get("officialTitle")),
            source=self.source,
            abstract=summary,
            authors=self._extract_investigators(protocol),
            journal=REGISTRY_NAME,
            year=year,
            external_ids=(("nct", nct_id),),
            url=f"https://clinicaltrials.gov/study/{nct_id}",
            publication_types=self._publication_types(design_module),
            source_position=position,
        )

    @staticmethod
    def _extract_investigators(protocol: dict[str, Any]) -> tuple[str, ...]:
        officials = (protocol.get("contactsLocationsModule") or {}).get("overallOfficials")
        names = flatten_authors(officials)
        if names:
            return names
        sponsor = (protocol.get("sponsorCollaboratorsModule") or {}).get("leadSponsor")
        return flatten_authors(sponsor)

    @staticmethod
    def _publication_types(design_module: dict[str, Any]) -> tuple[str, ...]:
        study_type = str(design_module.get("studyType", "")).upper()
        allocation = str((design_module.get("designInfo") or {}).get("allocation", "")).upper()

        types: list[str] = []
        if study_type == "INTERVENTIONAL":
            types.append("Randomized Controlled Trial" if allocation == "RANDOMIZED" else "Clinical Trial")
        elif study_type == "OBSERVATIONAL":
            types.append("Observational Study")
        for phase in as_list(design_module.get("phases")):
            if phase in PHASE_TYPES:
                types.append(PHASE_TYPES[phase])
        return tuple(types)
