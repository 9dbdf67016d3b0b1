"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest

from med_research.domain.entities import (
    Candidate,
    EvidenceTier,
    FailureKind,
    MergedCandidate,
    ScoredCandidate,
    SourceName,
    SourceOutcome,
)
from med_research.shared.async_utils import reset_rate_limiters

# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture(autouse=True)
def _isolated_rate_limiters():
    """Every test starts with fresh per-service rate budgets."""
    reset_rate_limiters()
    yield
    reset_rate_limiters()


@pytest.fixture
def mock_email():
    """Provide a mock email for NCBI API."""
    return "test@example.com"


# ============================================================
# Record Factories
# ============================================================


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    """Build a Candidate with sensible defaults."""

    def _make(title: str = "Migraine treatment with triptans in adults", **kwargs) -> Candidate:
        kwargs.setdefault("source", SourceName.PUBMED)
        return Candidate(title=title, **kwargs)

    return _make


@pytest.fixture
def make_scored() -> Callable[..., ScoredCandidate]:
    """Build a ScoredCandidate ready for the selector."""

    def _make(
        title: str = "Migraine treatment with triptans in adults",
        *,
        relevance_score: float = 0.8,
        evidence_tier: EvidenceTier = EvidenceTier.TIER_5,
        is_in_domain: bool = True,
        source: SourceName = SourceName.PUBMED,
        source_priority_rank: int = 3,
        **kwargs,
    ) -> ScoredCandidate:
        return ScoredCandidate(
            title=title,
            source=source,
            relevance_score=relevance_score,
            evidence_tier=evidence_tier,
            is_in_domain=is_in_domain,
            source_priority_rank=source_priority_rank,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_merged() -> Callable[..., MergedCandidate]:
    """Build a MergedCandidate for the scorer."""

    def _make(title: str, abstract: str = "", **kwargs) -> MergedCandidate:
        kwargs.setdefault("source", SourceName.PUBMED)
        return MergedCandidate(title=title, abstract=abstract, **kwargs)

    return _make


# ============================================================
# Fake Source Adapters
# ============================================================


class FakeAdapter:
    """In-memory SearchSource used by fan-out and pipeline tests."""

    def __init__(
        self,
        source: SourceName,
        candidates: list[Candidate] | None = None,
        *,
        failure: FailureKind | None = None,
        delay: float = 0.0,
        raises: Exception | None = None,
    ) -> None:
        self._source = source
        self._candidates = candidates or []
        self._failure = failure
        self._delay = delay
        self._raises = raises
        self.queries: list[tuple[str, int]] = []
        self.closed = False

    @property
    def name(self) -> SourceName:
        return self._source

    async def search(self, query: str, limit: int) -> SourceOutcome:
        self.queries.append((query, limit))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._raises is not None:
            raise self._raises
        if self._failure is not None:
            return SourceOutcome.failed(self._source, self._failure, "fake failure")
        return SourceOutcome.success(self._source, self._candidates[:limit])

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_adapter() -> type[FakeAdapter]:
    return FakeAdapter


# ============================================================
# HTTP Fixtures
# ============================================================


class RecordingTransport(httpx.MockTransport):
    """MockTransport that answers every request with one payload and keeps the requests."""

    def __init__(self, payload: object = None, *, status_code: int = 200) -> None:
        self.requests: list[httpx.Request] = []
        self.payload = payload
        self.status_code = status_code
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.payload is None:
            return httpx.Response(self.status_code)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last_params(self) -> httpx.QueryParams:
        return self.requests[-1].url.params


@pytest.fixture
def json_transport() -> type[RecordingTransport]:
    return RecordingTransport
