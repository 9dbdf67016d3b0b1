"""
Base API Client - Common HTTP request pattern for the JSON source adapters.

Provides:
- One shared httpx.AsyncClient per adapter
- Token-bucket rate limiting through an injected RateLimiter
- At most one retry on 429 (rate limit) with Retry-After support
- Circuit breaker for fault tolerance
- Typed errors instead of None, so the caller can tell failures apart
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from typing_extensions import Self

from med_research.shared.async_utils import CircuitBreaker, RateLimiter
from med_research.shared.exceptions import (
    ClientRequestError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    SourceTimeoutError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "med-research-pipeline/0.1 (+https://github.com/med-research-pipeline)"


class BaseAPIClient:
    """
    Base class for external API clients.

    Subclasses set ``_service_name`` and may override:
    - ``_handle_expected_status()``: service-specific status codes (e.g. 404 = no hits)
    - ``_parse_response()``: custom body extraction

    Raises from ``_make_request``:
        RateLimitError: 429 after the retry, or local budget exhausted
        ServiceUnavailableError: 5xx or open circuit breaker
        ClientRequestError: Other 4xx (never retried)
        SourceTimeoutError / NetworkError: Transport failures
        ParseError: Body is empty or not valid JSON
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 1
    _MAX_RETRY_WAIT: float = 2.0

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        rate_limiter: RateLimiter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Request timeout in seconds
            headers: Default headers for all requests
            rate_limiter: Shared per-service limiter (None = unlimited)
            circuit_breaker: If None, a default one is created (threshold=5, recovery=30s)
            transport: Custom httpx transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._rate_limiter = rate_limiter
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": USER_AGENT, **(headers or {})},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
            transport=transport,
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5, recovery_timeout=30.0, name=self._service_name
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        Make HTTP request with one retry on 429 and circuit breaker protection.

        Args:
            url: Full URL or path (appended to base_url)
            method: HTTP method (GET or POST)
            params: Query string parameters
            data: JSON body for POST requests
            headers: Additional headers for this request
            expect_json: If True, parse response as JSON; otherwise return text
        """
        full_url = self._build_url(url)

        for attempt in range(self._MAX_RETRIES + 1):
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()

            async with self._circuit_breaker:
                response = await self._send(full_url, method=method, params=params, data=data, headers=headers)
                if response.status_code >= 500:
                    raise ServiceUnavailableError(
                        f"returned HTTP {response.status_code}",
                        service=self._service_name,
                    )

            # Handle expected status codes (e.g., 404 = not found)
            expected = self._handle_expected_status(response, full_url)
            if expected is not _CONTINUE:
                return expected

            if response.status_code == 429:
                retry_after = self._get_retry_after(response, attempt)
                if attempt < self._MAX_RETRIES:
                    logger.warning(
                        f"{self._service_name}: Rate limited (429), "
                        f"retry {attempt + 1}/{self._MAX_RETRIES} in {retry_after:.1f}s"
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise RateLimitError(f"{self._service_name}: rate limit exceeded after retry", retry_after=retry_after)

            if response.status_code >= 400:
                raise ClientRequestError(
                    response.status_code,
                    f"{self._service_name} HTTP error {response.status_code}: {response.reason_phrase}",
                )

            return self._parse_response(response, expect_json)

        raise RateLimitError(f"{self._service_name}: rate limit exceeded after retry")

    async def _send(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._execute_request(url, method=method, params=params, data=data, headers=headers)
        except httpx.TimeoutException as e:
            raise SourceTimeoutError(f"{self._service_name} request timed out", timeout=self._timeout) from e
        except httpx.RequestError as e:
            raise NetworkError(f"{self._service_name} request failed: {e}") from e

    async def _execute_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        if method == "POST":
            return await self._client.post(url, params=clean_params, json=data, headers=headers or {})
        return await self._client.get(url, params=clean_params, headers=headers or {})

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle expected non-200 status codes that shouldn't count as failures.

        Return a value to short-circuit, or the sentinel _CONTINUE to continue
        normal processing. Default: no special handling.
        """
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if not response.content:
            raise ParseError(f"{self._service_name} returned an empty body", source=self._service_name)
        if not expect_json:
            return response.text
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"{self._service_name} returned invalid JSON: {e}", source=self._service_name) from e

    def _get_retry_after(self, response: httpx.Response, attempt: int) -> float:
        """Retry-After header (seconds), else exponential backoff; capped."""
        fallback = 0.5 * 2**attempt
        try:
            delay = float(response.headers.get("Retry-After", fallback))
        except (ValueError, TypeError):
            delay = fallback
        return max(0.0, min(delay, self._MAX_RETRY_WAIT))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
