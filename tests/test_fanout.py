"""Tests for FanOutCoordinator - concurrency, deadlines, failure isolation."""

from __future__ import annotations

import asyncio
import time

import pytest

from med_research.application.search import FanOutCoordinator, QueryBuilder
from med_research.domain.entities import Candidate, FailureKind, SourceName, SourceOutcome


@pytest.fixture
def plan():
    return QueryBuilder().build("migraine treatment")


def _candidates(source: SourceName, n: int) -> list[Candidate]:
    return [Candidate(title=f"{source.value} paper {i}", source=source, source_position=i) for i in range(n)]


class CancellationProbe:
    """Adapter that blocks until cancelled and records the cancellation."""

    def __init__(self, source: SourceName) -> None:
        self._source = source
        self.cancelled = asyncio.Event()

    @property
    def name(self) -> SourceName:
        return self._source

    async def search(self, query: str, limit: int) -> SourceOutcome:
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled.set()
            raise
        return SourceOutcome.success(self._source, [])


class TestConstruction:
    def test_duplicate_sources_rejected(self, fake_adapter):
        with pytest.raises(ValueError):
            FanOutCoordinator([fake_adapter(SourceName.PUBMED), fake_adapter(SourceName.PUBMED)])

    def test_sources(self, fake_adapter):
        coordinator = FanOutCoordinator([fake_adapter(SourceName.CROSSREF), fake_adapter(SourceName.PUBMED)])
        assert coordinator.sources == [SourceName.CROSSREF, SourceName.PUBMED]

    async def test_no_adapters(self, plan):
        assert await FanOutCoordinator([]).run(plan) == []


class TestRun:
    async def test_all_succeed_in_adapter_order(self, fake_adapter, plan):
        coordinator = FanOutCoordinator(
            [
                fake_adapter(SourceName.CROSSREF, _candidates(SourceName.CROSSREF, 2), delay=0.02),
                fake_adapter(SourceName.PUBMED, _candidates(SourceName.PUBMED, 3)),
            ]
        )
        outcomes = await coordinator.run(plan)
        assert [o.source for o in outcomes] == [SourceName.CROSSREF, SourceName.PUBMED]
        assert [len(o.candidates) for o in outcomes] == [2, 3]
        assert all(o.ok for o in outcomes)

    async def test_source_specific_queries_and_limit(self, fake_adapter, plan):
        pubmed = fake_adapter(SourceName.PUBMED)
        crossref = fake_adapter(SourceName.CROSSREF)
        await FanOutCoordinator([pubmed, crossref], per_source_limit=7).run(plan)
        assert pubmed.queries == [(plan.for_source(SourceName.PUBMED), 7)]
        assert crossref.queries == [("migraine treatment", 7)]

    async def test_calls_are_concurrent(self, fake_adapter, plan):
        adapters = [fake_adapter(source, delay=0.2) for source in list(SourceName)[:5]]
        started = time.perf_counter()
        await FanOutCoordinator(adapters).run(plan)
        assert time.perf_counter() - started < 0.6

    async def test_within_source_order_preserved(self, fake_adapter, plan):
        candidates = _candidates(SourceName.PUBMED, 4)
        outcomes = await FanOutCoordinator([fake_adapter(SourceName.PUBMED, candidates)]).run(plan)
        assert [c.source_position for c in outcomes[0].candidates] == [0, 1, 2, 3]


class TestFailureIsolation:
    async def test_slow_source_times_out_alone(self, fake_adapter, plan):
        coordinator = FanOutCoordinator(
            [
                fake_adapter(SourceName.PUBMED, _candidates(SourceName.PUBMED, 2)),
                fake_adapter(SourceName.EUROPE_PMC, _candidates(SourceName.EUROPE_PMC, 2), delay=5),
            ],
            global_timeout=2.0,
            source_timeout=0.05,
        )
        started = time.perf_counter()
        pubmed, europe = await coordinator.run(plan)
        assert time.perf_counter() - started < 1.0
        assert pubmed.ok and len(pubmed.candidates) == 2
        assert europe.failure is FailureKind.TIMEOUT
        assert europe.candidates == ()

    async def test_global_deadline(self, fake_adapter, plan):
        coordinator = FanOutCoordinator(
            [
                fake_adapter(SourceName.PUBMED, _candidates(SourceName.PUBMED, 1)),
                fake_adapter(SourceName.CROSSREF, delay=5),
            ],
            global_timeout=0.1,
            source_timeout=8.0,
        )
        started = time.perf_counter()
        pubmed, crossref = await coordinator.run(plan)
        assert time.perf_counter() - started < 1.0
        assert pubmed.ok
        assert crossref.failure is FailureKind.TIMEOUT

    async def test_reported_failure_passes_through(self, fake_adapter, plan):
        outcomes = await FanOutCoordinator(
            [
                fake_adapter(SourceName.FDA, failure=FailureKind.RATE_LIMITED),
                fake_adapter(SourceName.DOAJ, _candidates(SourceName.DOAJ, 1)),
            ]
        ).run(plan)
        assert outcomes[0].failure is FailureKind.RATE_LIMITED
        assert outcomes[1].ok

    async def test_adapter_exception_is_contained(self, fake_adapter, plan, caplog):
        outcomes = await FanOutCoordinator(
            [
                fake_adapter(SourceName.OPENALEX, raises=KeyError("results")),
                fake_adapter(SourceName.PUBMED, _candidates(SourceName.PUBMED, 1)),
            ]
        ).run(plan)
        assert outcomes[0].failure is FailureKind.MALFORMED_RESPONSE
        assert outcomes[1].ok
        assert "OpenAlex" in caplog.text

    async def test_caller_cancellation_cancels_sources(self, plan):
        probe = CancellationProbe(SourceName.PUBMED)
        task = asyncio.create_task(FanOutCoordinator([probe], global_timeout=30, source_timeout=30).run(plan))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.wait_for(probe.cancelled.wait(), timeout=1.0)
        assert probe.cancelled.is_set()

    async def test_elapsed_recorded(self, fake_adapter, plan):
        (outcome,) = await FanOutCoordinator([fake_adapter(SourceName.PUBMED, delay=0.05)]).run(plan)
        assert outcome.elapsed_ms >= 40
