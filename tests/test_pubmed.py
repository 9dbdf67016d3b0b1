"""
Tests for the PubMed and Clinical Guidelines adapters.

Entrez is never contacted: ``_call`` is replaced by an AsyncMock returning
parsed Entrez records, or the raw functions passed to ``_call`` raise.
"""

from unittest.mock import AsyncMock
from urllib.error import HTTPError, URLError

import pytest

from med_research.domain.entities import FailureKind, SourceName
from med_research.infrastructure.sources.guidelines import GUIDELINE_FILTER, ClinicalGuidelinesAdapter
from med_research.infrastructure.sources.pubmed import PubMedAdapter
from med_research.shared.async_utils import CircuitBreaker
from med_research.shared.exceptions import (
    ClientRequestError,
    MedResearchError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
)

# =============================================================================
# Entrez record builders
# =============================================================================


class _Element(str):
    """Stand-in for Bio.Entrez string elements carrying XML attributes."""

    def __new__(cls, value, **attributes):
        element = super().__new__(cls, value)
        element.attributes = attributes
        return element


def _article(pmid, title, *, year="2021", doi=None, pmc=None, pub_date=None, **article_fields):
    article_ids = [_Element(pmid, IdType="pubmed")]
    if doi:
        article_ids.append(_Element(doi, IdType="doi"))
    if pmc:
        article_ids.append(_Element(pmc, IdType="pmc"))
    article = {
        "ArticleTitle": title,
        "Abstract": {"AbstractText": ["Background text.", "Results text."]},
        "AuthorList": [
            {"LastName": "Smith", "ForeName": "John A", "Initials": "JA"},
            {"CollectiveName": "Migraine Trialists"},
        ],
        "Journal": {"Title": "Headache", "JournalIssue": {"PubDate": pub_date or {"Year": year}}},
        "PublicationTypeList": ["Randomized Controlled Trial", "Journal Article"],
        "ELocationID": [],
    }
    article.update(article_fields)
    return {
        "MedlineCitation": {"PMID": pmid, "Article": article},
        "PubmedData": {"ArticleIdList": article_ids},
    }


def _esearch(*pmids):
    return {"Count": str(len(pmids)), "IdList": list(pmids), "WarningList": {}}


@pytest.fixture
def adapter(mock_email):
    return PubMedAdapter(email=mock_email)


class TestPubMedSearch:
    """esearch + efetch normalization."""

    async def test_candidates_follow_esearch_order(self, adapter):
        adapter._call = AsyncMock(
            side_effect=[
                _esearch("200", "100"),
                {"PubmedArticle": [_article("100", "Second by relevance"), _article("200", "First by relevance")]},
            ]
        )
        outcome = await adapter.search("migraine", 10)

        assert outcome.ok
        assert [c.pmid for c in outcome.candidates] == ["200", "100"]
        assert [c.source_position for c in outcome.candidates] == [0, 1]

    async def test_field_mapping(self, adapter):
        article = _article("31000001", "Erenumab for migraine", doi="10.1111/head.14000", pmc="PMC7000001")
        adapter._call = AsyncMock(side_effect=[_esearch("31000001"), {"PubmedArticle": [article]}])
        outcome = await adapter.search("erenumab", 10)

        (candidate,) = outcome.candidates
        assert candidate.source == SourceName.PUBMED
        assert candidate.title == "Erenumab for migraine"
        assert candidate.authors == ("Smith JA", "Migraine Trialists")
        assert candidate.abstract == "Background text. Results text."
        assert candidate.journal == "Headache"
        assert candidate.year == 2021
        assert candidate.doi == "10.1111/head.14000"
        assert candidate.external_ids == (("pmcid", "PMC7000001"),)
        assert candidate.url == "https://pubmed.ncbi.nlm.nih.gov/31000001/"
        assert "Randomized Controlled Trial" in candidate.publication_types

    async def test_doi_from_elocation(self, adapter):
        article = _article("1", "Title", ELocationID=[_Element("10.1212/wnl.1234", EIdType="doi")])
        adapter._call = AsyncMock(side_effect=[_esearch("1"), {"PubmedArticle": [article]}])
        outcome = await adapter.search("x", 10)
        assert outcome.candidates[0].doi == "10.1212/wnl.1234"

    async def test_medline_date_year(self, adapter):
        article = _article("1", "Title", pub_date={"MedlineDate": "2019 Nov-Dec"})
        adapter._call = AsyncMock(side_effect=[_esearch("1"), {"PubmedArticle": [article]}])
        outcome = await adapter.search("x", 10)
        assert outcome.candidates[0].year == 2019

    async def test_no_ids_skips_efetch(self, adapter):
        adapter._call = AsyncMock(return_value=_esearch())
        outcome = await adapter.search("zzzz", 10)

        assert outcome.ok
        assert outcome.candidates == ()
        assert adapter._call.await_count == 1

    async def test_malformed_article_skipped(self, adapter):
        broken = {"MedlineCitation": {"PMID": "2"}}
        adapter._call = AsyncMock(side_effect=[_esearch("1", "2"), {"PubmedArticle": [_article("1", "Ok"), broken]}])
        outcome = await adapter.search("x", 10)

        assert len(outcome.candidates) == 1
        assert outcome.skipped_items == 1

    async def test_unexpected_efetch_document(self, adapter):
        adapter._call = AsyncMock(side_effect=[_esearch("1"), "<html/>"])
        outcome = await adapter.search("x", 10)
        assert outcome.failure == FailureKind.MALFORMED_RESPONSE

    async def test_esearch_arguments(self, adapter):
        adapter._call = AsyncMock(return_value=_esearch())
        await adapter.search("migraine[tiab]", 7)

        kwargs = adapter._call.await_args.kwargs
        assert kwargs["db"] == "pubmed"
        assert kwargs["term"] == "migraine[tiab]"
        assert kwargs["retmax"] == 7
        assert kwargs["sort"] == "relevance"


class TestPubMedRateLimitRetry:
    """esearch is retried once on 429 and nothing else."""

    async def test_one_retry(self, adapter):
        adapter._call = AsyncMock(side_effect=[RateLimitError("429"), _esearch()])
        outcome = await adapter.search("migraine", 10)

        assert outcome.ok
        assert adapter._call.await_count == 2

    async def test_gives_up_after_second_429(self, adapter):
        adapter._call = AsyncMock(side_effect=[RateLimitError("429"), RateLimitError("429")])
        outcome = await adapter.search("migraine", 10)

        assert outcome.failure == FailureKind.RATE_LIMITED
        assert adapter._call.await_count == 2

    async def test_server_error_not_retried(self, adapter):
        adapter._call = AsyncMock(side_effect=ServiceUnavailableError("HTTP 502", service="PubMed"))
        outcome = await adapter.search("migraine", 10)

        assert outcome.failure == FailureKind.SERVICE_UNAVAILABLE
        assert adapter._call.await_count == 1


class TestEntrezErrorTranslation:
    """``_call`` maps urllib/Entrez errors to pipeline errors."""

    @staticmethod
    def _raiser(error):
        def _func(**kwargs):
            raise error

        return _func

    @pytest.mark.parametrize(
        "error, expected",
        [
            (HTTPError("https://eutils", 429, "Too Many Requests", None, None), RateLimitError),
            (HTTPError("https://eutils", 502, "Bad Gateway", None, None), ServiceUnavailableError),
            (HTTPError("https://eutils", 400, "Bad Request", None, None), ClientRequestError),
            (URLError("connection refused"), NetworkError),
            (RuntimeError("Couldn't resolve #exp"), ParseError),
        ],
    )
    async def test_translation(self, adapter, error, expected):
        with pytest.raises(expected):
            await adapter._call(self._raiser(error), db="pubmed")

    @pytest.mark.parametrize(
        "error",
        [
            HTTPError("https://eutils", 400, "Bad Request", None, None),
            HTTPError("https://eutils", 429, "Too Many Requests", None, None),
            RuntimeError("Couldn't resolve #exp"),
        ],
    )
    async def test_rejections_leave_breaker_closed(self, mock_email, error):
        breaker = CircuitBreaker(failure_threshold=1, name="PubMed")
        adapter = PubMedAdapter(email=mock_email, circuit_breaker=breaker)

        for _ in range(3):
            with pytest.raises(MedResearchError):
                await adapter._call(self._raiser(error), db="pubmed")

        assert breaker.state == "closed"

    @pytest.mark.parametrize(
        "error",
        [
            HTTPError("https://eutils", 503, "Service Unavailable", None, None),
            URLError("connection refused"),
            TimeoutError(),
        ],
    )
    async def test_outages_open_breaker(self, mock_email, error):
        breaker = CircuitBreaker(failure_threshold=1, name="PubMed")
        adapter = PubMedAdapter(email=mock_email, circuit_breaker=breaker)

        with pytest.raises(MedResearchError):
            await adapter._call(self._raiser(error), db="pubmed")

        assert breaker.state == "open"


class TestClinicalGuidelines:
    """Guidelines are PubMed restricted to guideline publication types."""

    async def test_filter_added(self, mock_email):
        adapter = ClinicalGuidelinesAdapter(email=mock_email)
        adapter._call = AsyncMock(
            side_effect=[_esearch("1"), {"PubmedArticle": [_article("1", "Migraine practice guideline")]}]
        )
        outcome = await adapter.search("migraine", 10)

        term = adapter._call.await_args_list[0].kwargs["term"]
        assert term == f"(migraine) AND {GUIDELINE_FILTER}"
        assert outcome.source == SourceName.CLINICAL_GUIDELINES
        assert outcome.candidates[0].source == SourceName.CLINICAL_GUIDELINES
