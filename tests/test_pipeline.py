"""Tests for ResearchPipeline - end-to-end over fake sources."""

from __future__ import annotations

import pytest

from med_research.application.search import FanOutCoordinator, ResearchPipeline, Selector
from med_research.domain.entities import Candidate, EvidenceTier, FailureKind, SourceName
from med_research.shared.exceptions import InvalidQueryError, ResearchSourcesUnavailableError

PUBMED_RECORDS = [
    ("Erenumab for migraine prevention: a randomized controlled trial", "10.1000/p1", ("Goadsby PJ",)),
    ("Systematic review and meta-analysis of triptans for acute migraine treatment", "10.1000/p2", ("Cameron C",)),
    ("Topiramate therapy in chronic migraine: a cohort study", "10.1000/p3", ("Silberstein SD",)),
    ("Botulinum toxin treatment for chronic migraine in adults", "10.1000/p4", ("Aurora SK",)),
    ("Acupuncture for migraine treatment: a randomized trial with sham control", "10.1000/p5", ("Linde K",)),
]

CROSSREF_RECORDS = [
    ("Systematic Review and Meta-Analysis of Triptans for Acute Migraine Treatment", "10.1000/P2", ("C. Cameron",)),
    ("Gepants in migraine treatment: clinical overview", "10.1000/c2", ("Ana Lopez",)),
    ("Nerve stimulation devices for migraine therapy in patients", "10.1000/c3", ("Tom Brown",)),
]


def _records(source: SourceName, rows) -> list[Candidate]:
    return [
        Candidate(
            title=title,
            source=source,
            doi=doi,
            authors=authors,
            abstract="Patients with migraine were treated in a clinical setting.",
            source_position=i,
        )
        for i, (title, doi, authors) in enumerate(rows)
    ]


@pytest.fixture
def scenario_adapters(fake_adapter):
    return [
        fake_adapter(SourceName.PUBMED, _records(SourceName.PUBMED, PUBMED_RECORDS)),
        fake_adapter(SourceName.EUROPE_PMC, _records(SourceName.EUROPE_PMC, PUBMED_RECORDS), delay=5),
        fake_adapter(SourceName.CROSSREF, _records(SourceName.CROSSREF, CROSSREF_RECORDS)),
    ]


def _pipeline(adapters, **kwargs) -> ResearchPipeline:
    coordinator = FanOutCoordinator(adapters, global_timeout=2.0, source_timeout=0.1)
    return ResearchPipeline(coordinator=coordinator, **kwargs)


class TestMigraineScenario:
    """PubMed 5 hits, Europe PMC times out, CrossRef 3 hits with one shared DOI."""

    async def test_merged_count_and_degraded(self, scenario_adapters):
        result = await _pipeline(scenario_adapters).research("migraine treatment")
        assert result.stats.candidates == 8
        assert result.stats.merged == 7
        assert result.degraded_sources == ["Europe PMC"]
        europe = next(o for o in result.outcomes if o.source is SourceName.EUROPE_PMC)
        assert europe.failure is FailureKind.TIMEOUT

    async def test_citations_capped_and_ordered(self, scenario_adapters):
        result = await _pipeline(scenario_adapters).research("migraine treatment", max_results=5)
        assert 0 < len(result.citations) <= 5
        weights = [EvidenceTier(c.evidence_level).weight for c in result.citations]
        assert weights == sorted(weights, reverse=True)
        top = result.citations[0]
        assert top.evidence_level == "1A"
        assert top.sources == ("CrossRef", "PubMed")
        assert top.doi == "10.1000/p2"
        assert top.authors == ("Cameron C",)

    async def test_caller_shape(self, scenario_adapters):
        data = (await _pipeline(scenario_adapters).research("migraine treatment")).to_dict()
        assert set(data) == {"citations", "degradedSources", "lowConfidence"}
        assert data["degradedSources"] == ["Europe PMC"]
        assert data["lowConfidence"] is False
        for citation in data["citations"]:
            assert all(isinstance(a, str) and "object" not in a for a in citation["authors"])

    async def test_sources_get_their_own_syntax(self, scenario_adapters):
        await _pipeline(scenario_adapters).research("migraine treatment")
        pubmed, _, crossref = scenario_adapters
        assert "[Title/Abstract]" in pubmed.queries[0][0]
        assert crossref.queries[0][0] == "migraine treatment"


class TestFailures:
    async def test_total_failure_raises(self, fake_adapter):
        adapters = [
            fake_adapter(SourceName.PUBMED, failure=FailureKind.NETWORK_ERROR),
            fake_adapter(SourceName.CROSSREF, failure=FailureKind.RATE_LIMITED),
            fake_adapter(SourceName.FDA, delay=5),
        ]
        with pytest.raises(ResearchSourcesUnavailableError) as exc_info:
            await _pipeline(adapters).research("migraine treatment")
        assert str(exc_info.value) == "Research sources unavailable"
        assert exc_info.value.degraded_sources == ["PubMed", "CrossRef", "FDA"]

    async def test_partial_failure_still_answers(self, fake_adapter):
        adapters = [
            fake_adapter(SourceName.PUBMED, failure=FailureKind.SERVICE_UNAVAILABLE),
            fake_adapter(SourceName.CROSSREF, _records(SourceName.CROSSREF, CROSSREF_RECORDS)),
            fake_adapter(SourceName.DOAJ, raises=RuntimeError("bug")),
        ]
        result = await _pipeline(adapters).research("migraine treatment")
        assert result.degraded_sources == ["PubMed", "DOAJ"]
        assert result.citations

    async def test_empty_results_are_not_failures(self, fake_adapter):
        result = await _pipeline([fake_adapter(SourceName.PUBMED, [])]).research("migraine treatment")
        assert result.citations == []
        assert result.degraded_sources == []
        assert result.low_confidence

    async def test_invalid_query(self, fake_adapter):
        adapter = fake_adapter(SourceName.PUBMED)
        with pytest.raises(InvalidQueryError):
            await _pipeline([adapter]).research("   ")
        assert adapter.queries == []


class TestDomainGate:
    async def test_non_medical_query_returns_nothing(self, fake_adapter):
        physics = [
            Candidate(
                title="Density functional theory calculations of perovskite band gaps",
                abstract="We benchmark hybrid functionals against experiment.",
                source=SourceName.CROSSREF,
            ),
            Candidate(
                title="Machine-learned density functionals for molecules",
                abstract="Neural networks approximate exchange energies.",
                source=SourceName.OPENALEX,
            ),
        ]
        adapters = [
            fake_adapter(SourceName.CROSSREF, physics[:1]),
            fake_adapter(SourceName.OPENALEX, physics[1:]),
        ]
        result = await _pipeline(adapters).research("density functional theory calculations")
        assert result.citations == []
        assert result.low_confidence
        assert result.stats.in_domain == 0


class TestInjection:
    async def test_custom_selector(self, scenario_adapters):
        result = await _pipeline(scenario_adapters, selector=Selector(max_citations=2)).research("migraine treatment")
        assert len(result.citations) == 2

    def test_sources(self, scenario_adapters):
        assert _pipeline(scenario_adapters).sources == ["PubMed", "Europe PMC", "CrossRef"]
