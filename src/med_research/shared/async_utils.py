"""
Async utilities shared by the source adapters.

Provides:
- Token bucket rate limiting with bounded waiting
- A process-wide registry of per-service limiters
- Circuit breaker for fault tolerance
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .exceptions import RateLimitError, ServiceUnavailableError

logger = logging.getLogger(__name__)


# =============================================================================
# Rate Limiter (Token Bucket Algorithm)
# =============================================================================

@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for one external service.

    ``burst`` tokens are available up front and ``rate`` tokens are refilled
    every ``per`` seconds. A token is reserved under the lock (the bucket may go
    negative to queue callers), so check-and-decrement is a single atomic step
    for every coroutine sharing the limiter. Waiting happens outside the lock.

    If the reservation would require waiting longer than ``max_wait`` the call
    fails fast with RateLimitError and no token is consumed.

    Example:
        limiter = RateLimiter(rate=3, per=1.0, burst=10)
        async with limiter:
            await make_api_call()
    """
    rate: float = 3.0      # tokens refilled per period
    per: float = 1.0       # period in seconds
    burst: float | None = None
    max_wait: float = 2.0
    name: str = "api"
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        if self.rate <= 0 or self.per <= 0:
            raise ValueError("rate and per must be positive")
        if self.burst is None:
            self.burst = self.rate
        self._tokens = float(self.burst)
        self._last_update = time.monotonic()

    @property
    def capacity(self) -> float:
        return float(self.burst if self.burst is not None else self.rate)

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_update
        self._tokens = min(self.capacity, self._tokens + elapsed * (self.rate / self.per))
        self._last_update = now

    async def reserve(self) -> float:
        """Atomically take one token and return how long the caller must wait."""
        async with self._lock:
            self._refill(time.monotonic())
            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0

            wait_time = (1 - self._tokens) * (self.per / self.rate)
            if wait_time > self.max_wait:
                raise RateLimitError(
                    f"{self.name}: local rate budget exhausted",
                    retry_after=wait_time,
                )
            self._tokens -= 1
            return wait_time

    async def acquire(self) -> None:
        """Acquire a token, waiting a bounded time if necessary."""
        wait_time = await self.reserve()
        if wait_time > 0:
            logger.debug(f"Rate limit ({self.name}): waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# Per-process limiters keyed by external service. Every concurrent request
# shares these, so budgets hold across requests inside one process only.
_rate_limiters: dict[str, RateLimiter] = {}


def get_rate_limiter(
    api_name: str,
    rate: float = 5.0,
    per: float = 1.0,
    burst: float | None = None,
    max_wait: float = 2.0,
) -> RateLimiter:
    """Get or create the shared rate limiter for an API."""
    if api_name not in _rate_limiters:
        _rate_limiters[api_name] = RateLimiter(
            rate=rate, per=per, burst=burst, max_wait=max_wait, name=api_name
        )
    return _rate_limiters[api_name]


def reset_rate_limiters() -> None:
    """Forget all shared limiters (used between tests and on reconfiguration)."""
    _rate_limiters.clear()


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================

@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 1
    name: str = "api"

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time is not None:
                if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise ServiceUnavailableError("circuit breaker is open", service=self.name)

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise ServiceUnavailableError(
                        "circuit breaker is half-open (probe in flight)", service=self.name
                    )
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if isinstance(exc_val, asyncio.CancelledError):
                if self._state == "half_open":
                    self._half_open_calls = max(0, self._half_open_calls - 1)
            elif exc_val is not None:
                self._failure_count += 1
                self._last_failure_time = time.monotonic()

                if self._state == "half_open" or self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(
                        f"{self.name}: circuit breaker opened after {self._failure_count} failures"
                    )
            elif exc_val is None:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info(f"{self.name}: circuit breaker closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)
