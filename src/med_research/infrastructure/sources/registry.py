"""
Adapter registry - builds the enabled source adapters from settings.

Rate budgets are per external service, not per adapter: PubMed and Clinical
Guidelines share the NCBI budget, Europe PMC and Cochrane share the EBI one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from med_research.domain.entities import SourceName
from med_research.shared.async_utils import RateLimiter, get_rate_limiter
from med_research.shared.settings import PipelineSettings

from .base import SourceAdapter
from .clinical_trials import ClinicalTrialsAdapter
from .cochrane import CochraneAdapter
from .crossref import CrossRefAdapter
from .doaj import DOAJAdapter
from .europe_pmc import EuropePMCAdapter
from .fda import FDAAdapter
from .guidelines import ClinicalGuidelinesAdapter
from .openalex import OpenAlexAdapter
from .pubmed import PubMedAdapter
from .semantic_scholar import SemanticScholarAdapter

logger = logging.getLogger(__name__)

# (burst, tokens per second)
RATE_BUDGETS: dict[str, tuple[float, float]] = {
    "ncbi": (10, 3),
    "ncbi_with_key": (10, 10),
    "europe_pmc": (15, 5),
    "semantic_scholar": (5, 1),
    "crossref": (20, 10),
    "fda": (8, 2),
    "default": (10, 5),
}

SERVICE_KEYS: dict[SourceName, str] = {
    SourceName.PUBMED: "ncbi",
    SourceName.CLINICAL_GUIDELINES: "ncbi",
    SourceName.EUROPE_PMC: "europe_pmc",
    SourceName.COCHRANE: "europe_pmc",
    SourceName.SEMANTIC_SCHOLAR: "semantic_scholar",
    SourceName.CROSSREF: "crossref",
    SourceName.FDA: "fda",
    SourceName.OPENALEX: "openalex",
    SourceName.CLINICAL_TRIALS: "clinical_trials",
    SourceName.DOAJ: "doaj",
}

MAX_ACQUIRE_WAIT = 2.0


def rate_limiter_for(source: SourceName, settings: PipelineSettings) -> RateLimiter:
    """Shared limiter for the service behind ``source``."""
    service = SERVICE_KEYS[source]
    budget_key = service
    if service == "ncbi" and settings.ncbi_api_key:
        budget_key = "ncbi_with_key"
    burst, rate = RATE_BUDGETS.get(budget_key, RATE_BUDGETS["default"])
    return get_rate_limiter(service, rate=rate, per=1.0, burst=burst, max_wait=MAX_ACQUIRE_WAIT)


def _http_kwargs(
    source: SourceName,
    settings: PipelineSettings,
    transport: httpx.AsyncBaseTransport | None,
) -> dict[str, object]:
    return {
        "timeout": settings.source_timeout,
        "rate_limiter": rate_limiter_for(source, settings),
        "transport": transport,
    }


AdapterFactory = Callable[[PipelineSettings, httpx.AsyncBaseTransport | None], SourceAdapter]

ADAPTER_FACTORIES: dict[SourceName, AdapterFactory] = {
    SourceName.CLINICAL_GUIDELINES: lambda s, t: ClinicalGuidelinesAdapter(
        email=s.email,
        api_key=s.ncbi_api_key,
        rate_limiter=rate_limiter_for(SourceName.CLINICAL_GUIDELINES, s),
    ),
    SourceName.COCHRANE: lambda s, t: CochraneAdapter(**_http_kwargs(SourceName.COCHRANE, s, t)),
    SourceName.PUBMED: lambda s, t: PubMedAdapter(
        email=s.email,
        api_key=s.ncbi_api_key,
        rate_limiter=rate_limiter_for(SourceName.PUBMED, s),
    ),
    SourceName.EUROPE_PMC: lambda s, t: EuropePMCAdapter(**_http_kwargs(SourceName.EUROPE_PMC, s, t)),
    SourceName.CLINICAL_TRIALS: lambda s, t: ClinicalTrialsAdapter(**_http_kwargs(SourceName.CLINICAL_TRIALS, s, t)),
    SourceName.SEMANTIC_SCHOLAR: lambda s, t: SemanticScholarAdapter(
        api_key=s.semantic_scholar_api_key, **_http_kwargs(SourceName.SEMANTIC_SCHOLAR, s, t)
    ),
    SourceName.CROSSREF: lambda s, t: CrossRefAdapter(
        email=s.crossref_email, **_http_kwargs(SourceName.CROSSREF, s, t)
    ),
    SourceName.OPENALEX: lambda s, t: OpenAlexAdapter(
        email=s.crossref_email, **_http_kwargs(SourceName.OPENALEX, s, t)
    ),
    SourceName.DOAJ: lambda s, t: DOAJAdapter(**_http_kwargs(SourceName.DOAJ, s, t)),
    SourceName.FDA: lambda s, t: FDAAdapter(api_key=s.openfda_api_key, **_http_kwargs(SourceName.FDA, s, t)),
}


def create_adapter(
    source: SourceName,
    settings: PipelineSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SourceAdapter:
    """Build the adapter for one source."""
    return ADAPTER_FACTORIES[source](settings, transport)


def create_default_adapters(
    settings: PipelineSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SourceAdapter]:
    """Build one adapter per enabled source, in priority order."""
    enabled = set(settings.enabled_sources)
    adapters = [create_adapter(source, settings, transport) for source in settings.source_priority if source in enabled]
    adapters += [
        create_adapter(source, settings, transport)
        for source in settings.enabled_sources
        if source not in settings.source_priority
    ]
    logger.info(f"Source adapters: {[a.name.value for a in adapters]}")
    return adapters
