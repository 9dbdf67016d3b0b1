"""
Unified Exception Hierarchy for the medical research pipeline.

Exception Hierarchy:
    MedResearchError (base)
    ├── APIError
    │   ├── RateLimitError
    │   ├── NetworkError
    │   ├── SourceTimeoutError
    │   ├── ServiceUnavailableError
    │   └── ClientRequestError
    ├── ValidationError
    │   └── InvalidQueryError
    ├── DataError
    │   └── ParseError
    ├── ResearchSourcesUnavailableError
    └── ConfigurationError

Only InvalidQueryError and ResearchSourcesUnavailableError ever cross the
pipeline boundary. Everything under APIError/DataError is absorbed by the
source adapters and converted into a typed per-source outcome.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = auto()      # Recoverable, can continue
    ERROR = auto()        # Failed but can retry
    CRITICAL = auto()     # Cannot continue
    TRANSIENT = auto()    # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""
    API = "api"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"
    PIPELINE = "pipeline"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to an error."""
    source: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class MedResearchError(Exception):
    """
    Base exception for all pipeline errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.source:
            result["source"] = self.context.source
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# API Errors
# =============================================================================

class APIError(MedResearchError):
    """Base class for errors raised while talking to an external search API."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
        category: ErrorCategory = ErrorCategory.API,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=category,
            retryable=retryable,
        )


class RateLimitError(APIError):
    """Raised when an API (or our own limiter) rejects a request for rate reasons."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float = 1.0,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=ctx.source,
            operation=ctx.operation,
            input_value=ctx.input_value,
            suggestion=ctx.suggestion or "Wait and retry the request",
            retry_after=retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(message, context=ctx, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT
        self.retry_after = retry_after


class NetworkError(APIError):
    """Raised for network connectivity issues."""

    def __init__(
        self,
        message: str = "Network connection failed",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, context=context, retryable=False, category=ErrorCategory.NETWORK)


class SourceTimeoutError(APIError):
    """Raised when a source does not answer within its time budget."""

    def __init__(
        self,
        message: str = "Source request timed out",
        *,
        timeout: float | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if timeout is not None:
            message = f"{message} after {timeout:.1f}s"
        super().__init__(message, context=context, retryable=False, category=ErrorCategory.NETWORK)
        self.severity = ErrorSeverity.TRANSIENT


class ServiceUnavailableError(APIError):
    """Raised when the external service answers with a 5xx or the circuit is open."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        *,
        service: str = "API",
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(f"{service}: {message}", context=context, retryable=False)
        self.severity = ErrorSeverity.TRANSIENT


class ClientRequestError(APIError):
    """Raised for 4xx responses other than 429 (bad query, auth failure, ...)."""

    def __init__(
        self,
        status_code: int,
        message: str = "Request rejected",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(f"HTTP {status_code}: {message}", context=context, retryable=False)
        self.status_code = status_code


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(MedResearchError):
    """Base class for validation errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when the research query is empty or out of bounds."""

    def __init__(
        self,
        query: str | None,
        reason: str = "Query cannot be empty",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=ctx.source,
            operation=ctx.operation,
            input_value=query,
            suggestion=ctx.suggestion or "Provide a medical question, e.g. 'migraine treatment'",
            retry_after=ctx.retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(f"Invalid query: {reason}", context=ctx)
        self.reason = reason


# =============================================================================
# Data Errors
# =============================================================================

class DataError(MedResearchError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class ParseError(DataError):
    """Raised when an upstream payload does not have the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg, context=context)


# =============================================================================
# Pipeline Errors
# =============================================================================

class ResearchSourcesUnavailableError(MedResearchError):
    """Raised when every source in a fan-out failed, so no citations can be produced."""

    def __init__(
        self,
        degraded_sources: Sequence[str],
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            "Research sources unavailable",
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.PIPELINE,
            retryable=True,
        )
        self.degraded_sources = list(degraded_sources)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["degraded_sources"] = self.degraded_sources
        return result


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(MedResearchError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )
