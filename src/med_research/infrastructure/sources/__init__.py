"""
Source adapters for the external literature databases.

Each adapter turns one database's response schema into Candidates and
reports failures as typed SourceOutcomes.
"""

from .base import HttpSourceAdapter, SourceAdapter
from .base_client import BaseAPIClient
from .clinical_trials import ClinicalTrialsAdapter
from .cochrane import CochraneAdapter
from .crossref import CrossRefAdapter
from .doaj import DOAJAdapter
from .europe_pmc import EuropePMCAdapter
from .fda import FDAAdapter
from .guidelines import ClinicalGuidelinesAdapter
from .openalex import OpenAlexAdapter
from .pubmed import PubMedAdapter
from .registry import create_adapter, create_default_adapters, rate_limiter_for
from .semantic_scholar import SemanticScholarAdapter

__all__ = [
    # Base classes
    "BaseAPIClient",
    "SourceAdapter",
    "HttpSourceAdapter",
    # Adapters
    "ClinicalGuidelinesAdapter",
    "CochraneAdapter",
    "PubMedAdapter",
    "EuropePMCAdapter",
    "ClinicalTrialsAdapter",
    "SemanticScholarAdapter",
    "CrossRefAdapter",
    "OpenAlexAdapter",
    "DOAJAdapter",
    "FDAAdapter",
    # Registry
    "create_adapter",
    "create_default_adapters",
    "rate_limiter_for",
]
