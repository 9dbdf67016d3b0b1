"""
Typed per-source outcomes of one fan-out.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from med_research.shared.exceptions import (
    ClientRequestError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    SourceTimeoutError,
)

from .candidate import Candidate
from .source import SourceName


class FailureKind(Enum):
    """Why a source contributed nothing."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK_ERROR = "network_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CLIENT_ERROR = "client_error"

    @classmethod
    def from_error(cls, error: BaseException) -> FailureKind:
        """Map an exception raised inside an adapter to a failure kind."""
        if isinstance(error, (SourceTimeoutError, asyncio.TimeoutError, TimeoutError)):
            return cls.TIMEOUT
        if isinstance(error, RateLimitError):
            return cls.RATE_LIMITED
        if isinstance(error, (ParseError, ValueError, KeyError, TypeError)):
            return cls.MALFORMED_RESPONSE
        if isinstance(error, ServiceUnavailableError):
            return cls.SERVICE_UNAVAILABLE
        if isinstance(error, ClientRequestError):
            return cls.CLIENT_ERROR
        if isinstance(error, (NetworkError, OSError)):
            return cls.NETWORK_ERROR
        return cls.NETWORK_ERROR


@dataclass(frozen=True)
class SourceOutcome:
    """
    Result of querying one source: either candidates or a typed failure.

    A successful call that found nothing is not a failure.
    """

    source: SourceName
    candidates: tuple[Candidate, ...] = ()
    failure: FailureKind | None = None
    detail: str = ""
    elapsed_ms: float = 0.0
    skipped_items: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def degraded(self) -> bool:
        return self.failure is not None

    @classmethod
    def success(
        cls,
        source: SourceName,
        candidates: list[Candidate] | tuple[Candidate, ...],
        *,
        elapsed_ms: float = 0.0,
        skipped_items: int = 0,
    ) -> SourceOutcome:
        return cls(
            source=source,
            candidates=tuple(candidates),
            elapsed_ms=elapsed_ms,
            skipped_items=skipped_items,
        )

    @classmethod
    def failed(
        cls,
        source: SourceName,
        failure: FailureKind,
        detail: str = "",
        *,
        elapsed_ms: float = 0.0,
    ) -> SourceOutcome:
        return cls(source=source, failure=failure, detail=detail, elapsed_ms=elapsed_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "ok": self.ok,
            "count": len(self.candidates),
            "failure": self.failure.value if self.failure else None,
            "detail": self.detail,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "skipped_items": self.skipped_items,
        }
