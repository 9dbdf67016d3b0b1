"""
PubMed adapter - NCBI Entrez esearch + efetch.

Entrez calls are blocking, so they run in a worker thread. The search step
is retried once on NCBI rate limiting (HTTP 429); nothing else is retried.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from typing import Any
from urllib.error import HTTPError, URLError

from Bio import Entrez
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from med_research.domain.entities import Candidate, SourceName, normalize_pmcid
from med_research.shared.async_utils import CircuitBreaker, RateLimiter
from med_research.shared.exceptions import (
    ClientRequestError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    SourceTimeoutError,
)

from .base import SourceAdapter
from .normalize import clean_text, flatten_authors, parse_year

logger = logging.getLogger(__name__)

# One retry, only for rate limiting
MAX_ATTEMPTS = 2
RETRY_DELAY = 0.5  # seconds

PUBMED_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"


def _is_rate_limited(error: BaseException) -> bool:
    return isinstance(error, RateLimitError)


class PubMedAdapter(SourceAdapter):
    """
    PubMed search through Bio.Entrez.

    Args:
        email: Contact email required by NCBI
        api_key: Optional NCBI API key (10 req/s instead of 3)
        rate_limiter: Shared limiter for every NCBI caller in the process
        circuit_breaker: Optional circuit breaker
    """

    source = SourceName.PUBMED

    def __init__(
        self,
        email: str,
        api_key: str | None = None,
        rate_limiter: RateLimiter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        Entrez.email = email  # type: ignore[assignment]
        if api_key:
            Entrez.api_key = api_key  # type: ignore[assignment]
        # The fan-out has its own deadline; Entrez must not sleep between its own retries
        Entrez.max_tries = 1
        Entrez.sleep_between_tries = 1

        self._email = email
        self._api_key = api_key
        self._rate_limiter = rate_limiter
        self._circuit_breaker = circuit_breaker or CircuitBreaker(name=self.source.value)

    async def _fetch(self, query: str, limit: int) -> list[Any]:
        id_list = await self._search_ids(query, limit)
        if not id_list:
            return []

        papers = await self._fetch_articles(id_list)
        if not isinstance(papers, dict):
            raise ParseError("efetch returned an unexpected document", source=self.source.value)
        articles = list(papers.get("PubmedArticle", []))

        # efetch does not promise esearch's relevance order
        order = {pmid: i for i, pmid in enumerate(id_list)}
        articles.sort(key=lambda a: order.get(self._pmid_of(a), len(order)))
        return articles

    @retry(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=RETRY_DELAY, min=RETRY_DELAY, max=RETRY_DELAY * 4),
        retry=retry_if_exception(_is_rate_limited),
        reraise=True,
    )
    async def _search_ids(self, query: str, limit: int) -> list[str]:
        """Search for PubMed IDs in relevance order."""
        record = await self._call(Entrez.esearch, db="pubmed", term=query, retmax=limit, sort="relevance")

        warning_list = record.get("WarningList", {})
        if warning_list:
            for warn_type, warn_msgs in warning_list.items():
                if isinstance(warn_msgs, list) and warn_msgs:
                    logger.debug(f"NCBI {warn_type}: {warn_msgs}")

        return [str(pmid) for pmid in record.get("IdList", [])]

    async def _fetch_articles(self, id_list: list[str]) -> Any:
        return await self._call(Entrez.efetch, db="pubmed", id=",".join(id_list), retmode="xml")

    async def _call(self, func: Callable[..., Any], **kwargs: Any) -> Any:
        """Run one Entrez request + parse in a thread, translating errors."""
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()

        # Only transport failures and 5xx count against the breaker
        rejection: Exception | None = None
        async with self._circuit_breaker:
            try:
                handle = await asyncio.to_thread(func, **kwargs)
                try:
                    return await asyncio.to_thread(Entrez.read, handle)
                finally:
                    handle.close()
            except HTTPError as e:
                if e.code >= 500:
                    raise ServiceUnavailableError(f"HTTP {e.code}", service=self.source.value) from e
                rejection = e
            except URLError as e:
                raise NetworkError(f"{self.source.value} request failed: {e.reason}") from e
            except TimeoutError as e:
                raise SourceTimeoutError(f"{self.source.value} request timed out") from e
            except (RuntimeError, ValueError) as e:
                # Entrez.read raises these for error documents and broken XML
                rejection = e

        if isinstance(rejection, HTTPError):
            if rejection.code == 429:
                raise RateLimitError(f"{self.source.value}: NCBI rate limit (429)") from rejection
            raise ClientRequestError(rejection.code, f"{self.source.value}: {rejection.reason}") from rejection
        raise ParseError(str(rejection), source=self.source.value) from rejection

    # =========================================================================
    # Parsing
    # =========================================================================

    @staticmethod
    def _pmid_of(article: Any) -> str:
        try:
            return str(article["MedlineCitation"]["PMID"])
        except (KeyError, TypeError):
            return ""

    def _parse_item(self, article: Any, position: int) -> Candidate | None:
        medline_citation = article["MedlineCitation"]
        article_data = medline_citation["Article"]
        pubmed_data = article.get("PubmedData", {})

        pmid = str(medline_citation.get("PMID", ""))
        doi, pmc_id = self._extract_identifiers(article_data, pubmed_data)
        journal = article_data.get("Journal", {})

        return Candidate(
            title=clean_text(article_data.get("ArticleTitle")),
            source=self.source,
            abstract=self._extract_abstract(article_data),
            authors=flatten_authors(article_data.get("AuthorList", [])),
            journal=clean_text(journal.get("Title")) or None,
            year=self._extract_year(article_data),
            doi=doi,
            pmid=pmid or None,
            external_ids=(("pmcid", pmc_id),) if pmc_id else (),
            url=PUBMED_URL.format(pmid=pmid) if pmid else None,
            publication_types=tuple(str(pt) for pt in article_data.get("PublicationTypeList", [])),
            source_position=position,
        )

    @staticmethod
    def _extract_abstract(article_data: dict) -> str:
        """Extract abstract text from article data."""
        abstract = article_data.get("Abstract", {})
        parts = abstract.get("AbstractText", []) if isinstance(abstract, dict) else []
        if isinstance(parts, list):
            return clean_text(" ".join(str(part) for part in parts))
        return clean_text(parts)

    @staticmethod
    def _extract_year(article_data: dict) -> int | None:
        pub_date = article_data.get("Journal", {}).get("JournalIssue", {}).get("PubDate", {})
        year = parse_year(pub_date.get("Year"))
        if year is None and "MedlineDate" in pub_date:
            match = re.search(r"(\d{4})", str(pub_date["MedlineDate"]))
            year = parse_year(match.group(1)) if match else None
        if year is None:
            for article_date in article_data.get("ArticleDate", []):
                year = parse_year(article_date.get("Year"))
                if year:
                    break
        return year

    @staticmethod
    def _extract_identifiers(article_data: dict, pubmed_data: dict) -> tuple[str | None, str | None]:
        """DOI and PMC ID from ArticleIdList, with ELocationID as DOI fallback."""
        doi: str | None = None
        pmc_id: str | None = None

        for aid in pubmed_data.get("ArticleIdList", []):
            if hasattr(aid, "attributes"):
                id_type = aid.attributes.get("IdType")
                if id_type == "doi":
                    doi = str(aid)
                elif id_type == "pmc":
                    pmc_id = normalize_pmcid(str(aid))

        if doi is None:
            for location in article_data.get("ELocationID", []):
                if hasattr(location, "attributes") and location.attributes.get("EIdType") == "doi":
                    doi = str(location)
                    break

        return doi, pmc_id
