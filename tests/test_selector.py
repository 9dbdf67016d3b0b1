"""Tests for Selector - floor, ordering, cap and low-confidence signal."""

from __future__ import annotations

import random

import pytest

from med_research.application.search import Selector
from med_research.domain.entities import EvidenceTier, SourceName
from med_research.shared.settings import HARD_MAX_CITATIONS


class TestFloorAndDomain:
    def test_below_floor_excluded(self, make_scored):
        result = Selector(relevance_floor=0.3).select(
            [make_scored("Strong", relevance_score=0.9), make_scored("Weak", relevance_score=0.29)]
        )
        assert [c.title for c in result.citations] == ["Strong"]
        assert result.excluded_below_floor == 1

    def test_out_of_domain_excluded(self, make_scored):
        result = Selector().select([make_scored("Off topic", is_in_domain=False)])
        assert result.citations == []
        assert result.excluded_out_of_domain == 1

    def test_floor_not_lowered_to_fill(self, make_scored):
        items = [make_scored(f"Weak {i}", relevance_score=0.1) for i in range(20)]
        result = Selector().select(items)
        assert result.citations == []
        assert result.low_confidence


class TestOrdering:
    def test_tier_dominates_relevance(self, make_scored):
        result = Selector().select(
            [
                make_scored("Great case report", relevance_score=1.0, evidence_tier=EvidenceTier.TIER_5),
                make_scored("Barely relevant review", relevance_score=0.31, evidence_tier=EvidenceTier.TIER_1A),
                make_scored("Good trial", relevance_score=0.7, evidence_tier=EvidenceTier.TIER_2),
            ]
        )
        assert [c.title for c in result.citations] == ["Barely relevant review", "Good trial", "Great case report"]

    def test_relevance_then_year(self, make_scored):
        result = Selector().select(
            [
                make_scored("Old", relevance_score=0.5, year=2001),
                make_scored("New", relevance_score=0.5, year=2022),
                make_scored("Best", relevance_score=0.9, year=1999),
                make_scored("Undated", relevance_score=0.5),
            ]
        )
        assert [c.title for c in result.citations] == ["Best", "New", "Old", "Undated"]

    def test_source_priority_breaks_full_ties(self, make_scored):
        result = Selector().select(
            [
                make_scored("Same", source=SourceName.CROSSREF, source_priority_rank=7, doi="10.1000/b"),
                make_scored("Same", source=SourceName.PUBMED, source_priority_rank=3, doi="10.1000/a"),
            ]
        )
        assert result.citations[0].doi == "10.1000/a"

    def test_deterministic_regardless_of_input_order(self, make_scored):
        items = [
            make_scored(f"Paper {i}", relevance_score=0.3 + (i % 5) / 10, evidence_tier=list(EvidenceTier)[i % 6])
            for i in range(15)
        ]
        expected = [c.title for c in Selector(max_citations=12).select(items).citations]
        shuffled = items[:]
        random.Random(7).shuffle(shuffled)
        assert [c.title for c in Selector(max_citations=12).select(shuffled).citations] == expected

    def test_tier_dominance_property(self, make_scored):
        rng = random.Random(42)
        items = [
            make_scored(
                f"Paper {i}",
                relevance_score=rng.uniform(0.3, 1.0),
                evidence_tier=rng.choice(list(EvidenceTier)),
            )
            for i in range(40)
        ]
        selected = Selector(max_citations=12).select(items).selected
        weights = [c.evidence_weight for c in selected]
        assert weights == sorted(weights, reverse=True)


class TestCap:
    def test_default_cap(self, make_scored):
        result = Selector().select([make_scored(f"Paper {i}") for i in range(30)])
        assert len(result.citations) == 10
        assert result.truncated == 20

    def test_per_request_cap(self, make_scored):
        result = Selector().select([make_scored(f"Paper {i}") for i in range(30)], max_results=5)
        assert len(result.citations) == 5

    @pytest.mark.parametrize(("requested", "expected"), [(100, HARD_MAX_CITATIONS), (0, 1), (-3, 1)])
    def test_cap_clamped(self, make_scored, requested, expected):
        result = Selector().select([make_scored(f"Paper {i}") for i in range(30)], max_results=requested)
        assert len(result.citations) == expected

    def test_constructor_cap_clamped(self):
        assert Selector(max_citations=50).max_citations == HARD_MAX_CITATIONS


class TestLowConfidence:
    def test_under_min_is_low_confidence(self, make_scored):
        result = Selector(min_citations=3).select([make_scored("A"), make_scored("B")])
        assert len(result.citations) == 2
        assert result.low_confidence

    def test_enough_is_confident(self, make_scored):
        result = Selector(min_citations=3).select([make_scored(f"P{i}") for i in range(3)])
        assert not result.low_confidence

    def test_small_requested_cap_is_not_low_confidence(self, make_scored):
        result = Selector(min_citations=3).select([make_scored(f"P{i}") for i in range(5)], max_results=2)
        assert len(result.citations) == 2
        assert not result.low_confidence

    def test_empty_is_low_confidence(self):
        assert Selector(min_citations=0).select([]).low_confidence

    def test_to_dict(self, make_scored):
        data = Selector().select([make_scored("A")]).to_dict()
        assert data["low_confidence"] is True
        assert data["citations"][0]["title"] == "A"
