"""Tests for domain entities: identifiers, candidates, citations, outcomes."""

from __future__ import annotations

import pytest

from med_research.domain.entities import (
    DEFAULT_SOURCE_PRIORITY,
    Candidate,
    Citation,
    EvidenceTier,
    FailureKind,
    MergedCandidate,
    ScoredCandidate,
    SourceName,
    SourceOutcome,
    build_priority_ranks,
    normalize_doi,
    normalize_nct_id,
    normalize_pmcid,
    normalize_pmid,
)

# ============================================================
# Identifiers
# ============================================================


class TestIdentifiers:
    @pytest.mark.parametrize(
        "raw",
        [
            "10.1000/ABC.123",
            "https://doi.org/10.1000/abc.123",
            "http://dx.doi.org/10.1000/abc.123",
            "doi:10.1000/abc.123",
            " 10.1000/abc.123. ",
        ],
    )
    def test_doi_normalized(self, raw):
        assert normalize_doi(raw) == "10.1000/abc.123"

    @pytest.mark.parametrize("raw", ["", "not a doi", "10.12/x", None, 12345])
    def test_invalid_doi(self, raw):
        assert normalize_doi(raw) is None

    def test_pmid(self):
        assert normalize_pmid("12345678") == "12345678"
        assert normalize_pmid(12345678) == "12345678"
        assert normalize_pmid("PMID:123") == "123"
        assert normalize_pmid("https://pubmed.ncbi.nlm.nih.gov/123/") == "123"
        assert normalize_pmid("1234567890") is None
        assert normalize_pmid("0") is None
        assert normalize_pmid("abc") is None

    def test_nct_and_pmcid(self):
        assert normalize_nct_id("nct01234567") == "NCT01234567"
        assert normalize_nct_id("NCT123") is None
        assert normalize_pmcid("12345") == "PMC12345"
        assert normalize_pmcid("pmc12345") == "PMC12345"
        assert normalize_pmcid("PMCX") is None


# ============================================================
# Sources
# ============================================================


class TestSourceName:
    def test_parse_display_and_enum_names(self):
        assert SourceName.parse("Europe PMC") is SourceName.EUROPE_PMC
        assert SourceName.parse("europe_pmc") is SourceName.EUROPE_PMC
        assert SourceName.parse(SourceName.FDA) is SourceName.FDA

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            SourceName.parse("Google Scholar")

    def test_default_priority(self):
        ranks = build_priority_ranks()
        assert ranks[SourceName.CLINICAL_GUIDELINES] == 1
        assert ranks[SourceName.PUBMED] == 3
        assert ranks[SourceName.FDA] == 10
        assert len(DEFAULT_SOURCE_PRIORITY) == 10

    def test_partial_priority_keeps_every_source_ranked(self):
        ranks = build_priority_ranks([SourceName.CROSSREF, SourceName.PUBMED])
        assert ranks[SourceName.CROSSREF] == 1
        assert ranks[SourceName.PUBMED] == 2
        assert ranks[SourceName.CLINICAL_GUIDELINES] == 3
        assert sorted(ranks.values()) == list(range(1, 11))

    def test_duplicate_priority_rejected(self):
        with pytest.raises(ValueError):
            build_priority_ranks([SourceName.PUBMED, SourceName.PUBMED])


# ============================================================
# Candidates
# ============================================================


class TestCandidate:
    def test_title_required(self):
        with pytest.raises(ValueError):
            Candidate(title="   ", source=SourceName.PUBMED)

    def test_authors_must_be_strings(self):
        with pytest.raises(TypeError):
            Candidate(title="X", source=SourceName.PUBMED, authors=({"name": "Smith"},))

    def test_identifiers_normalized(self):
        c = Candidate(
            title="  Title  ",
            source=SourceName.CROSSREF,
            doi="https://doi.org/10.1000/ABC",
            pmid="PMID:42",
            external_ids=(("NCT", "NCT01234567"),),
        )
        assert c.title == "Title"
        assert c.doi == "10.1000/abc"
        assert c.pmid == "42"
        assert c.external_id("nct") == "NCT01234567"
        assert c.has_strong_id

    def test_invalid_doi_dropped(self):
        c = Candidate(title="X", source=SourceName.CROSSREF, doi="garbage")
        assert c.doi is None
        assert not c.has_strong_id

    @pytest.mark.parametrize(
        ("authors", "surname"),
        [
            (("Smith JA",), "smith"),
            (("Jane Smith",), "smith"),
            (("Smith, Jane",), "smith"),
            (("Ludwig van Beethoven",), "beethoven"),
            ((), ""),
        ],
    )
    def test_first_author_surname(self, authors, surname):
        c = Candidate(title="X", source=SourceName.PUBMED, authors=authors)
        assert c.first_author_surname == surname

    def test_best_identifier_order(self):
        assert Candidate(title="X", source=SourceName.PUBMED, doi="10.1000/x", pmid="1").best_identifier == "doi:10.1000/x"
        assert Candidate(title="X", source=SourceName.PUBMED, pmid="1").best_identifier == "PMID:1"
        nct = Candidate(title="X", source=SourceName.CLINICAL_TRIALS, external_ids=(("nct", "NCT01234567"),))
        assert nct.best_identifier == "NCT:NCT01234567"
        assert Candidate(title="X", source=SourceName.FDA, url="https://x").best_identifier == "https://x"


class TestMergedAndScored:
    def test_winner_must_contribute(self):
        with pytest.raises(ValueError):
            MergedCandidate(
                title="X",
                source=SourceName.PUBMED,
                contributing_sources=frozenset({SourceName.CROSSREF}),
            )

    def test_contributing_defaults_to_own_source(self):
        merged = MergedCandidate(title="X", source=SourceName.DOAJ)
        assert merged.contributing_sources == frozenset({SourceName.DOAJ})

    def test_singleton(self):
        c = Candidate(title="X", source=SourceName.OPENALEX, year=2020)
        merged = MergedCandidate.singleton(c, rank=8)
        assert merged.source_priority_rank == 8
        assert merged.year == 2020

    def test_score_clamped(self):
        assert ScoredCandidate(title="X", source=SourceName.PUBMED, relevance_score=3.0).relevance_score == 1.0
        assert ScoredCandidate(title="X", source=SourceName.PUBMED, relevance_score=-1).relevance_score == 0.0

    def test_out_of_domain_scores_zero(self):
        scored = ScoredCandidate(title="X", source=SourceName.PUBMED, relevance_score=0.9, is_in_domain=False)
        assert scored.relevance_score == 0.0

    def test_with_evidence_copies(self):
        scored = ScoredCandidate(title="X", source=SourceName.PUBMED)
        upgraded = scored.with_evidence(EvidenceTier.TIER_1A)
        assert upgraded.evidence_tier is EvidenceTier.TIER_1A
        assert scored.evidence_tier is EvidenceTier.TIER_5


class TestEvidenceTier:
    def test_weights_strictly_ordered(self):
        weights = [tier.weight for tier in EvidenceTier]
        assert weights == sorted(weights, reverse=True)
        assert len(set(weights)) == len(weights)

    def test_top_and_bottom_two_orders_apart(self):
        assert EvidenceTier.TIER_1A.weight / EvidenceTier.lowest().weight >= 100

    def test_labels(self):
        assert EvidenceTier.TIER_2.label.startswith("Level 2")


class TestCitation:
    def test_from_scored(self):
        scored = ScoredCandidate(
            title="Triptans for migraine",
            source=SourceName.PUBMED,
            authors=("Smith J", "Doe A", "Roe B"),
            year=2021,
            journal="Cephalalgia",
            pmid="123",
            relevance_score=0.81234,
            evidence_tier=EvidenceTier.TIER_2,
            contributing_sources=frozenset({SourceName.PUBMED, SourceName.CROSSREF}),
        )
        citation = Citation.from_scored(scored)
        assert citation.identifier == "PMID:123"
        assert citation.evidence_level == "2"
        assert citation.relevance_score == 0.8123
        assert citation.sources == ("CrossRef", "PubMed")
        assert citation.author_string == "Smith J et al."

        data = citation.to_dict()
        assert data["authors"] == ["Smith J", "Doe A", "Roe B"]
        assert all(isinstance(a, str) for a in data["authors"])

    @pytest.mark.parametrize(
        ("authors", "expected"),
        [((), "Unknown authors"), (("A",), "A"), (("A", "B"), "A and B")],
    )
    def test_author_string(self, authors, expected):
        citation = Citation(
            title="X",
            authors=authors,
            year=None,
            journal=None,
            identifier="",
            evidence_tier="",
            evidence_level="5",
            relevance_score=0.5,
        )
        assert citation.author_string == expected


class TestSourceOutcome:
    def test_success_with_no_hits_is_not_degraded(self):
        outcome = SourceOutcome.success(SourceName.DOAJ, [])
        assert outcome.ok
        assert not outcome.degraded

    def test_failed(self):
        outcome = SourceOutcome.failed(SourceName.FDA, FailureKind.TIMEOUT, "slow", elapsed_ms=8000)
        assert outcome.degraded
        data = outcome.to_dict()
        assert data == {
            "source": "FDA",
            "ok": False,
            "count": 0,
            "failure": "timeout",
            "detail": "slow",
            "elapsed_ms": 8000.0,
            "skipped_items": 0,
        }
