"""
FanOutCoordinator - Concurrent, deadline-bounded source queries.

Every source is queried in its own task. Each task has its own sub-timeout
and the whole fan-out has one global deadline; whatever has settled when the
deadline passes is returned, the rest is cancelled and reported as timed out.
A failing source never affects its siblings.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Sequence
from typing import Protocol

from med_research.domain.entities import FailureKind, SourceName, SourceOutcome

from .query_builder import QueryPlan

logger = logging.getLogger(__name__)

DEFAULT_GLOBAL_TIMEOUT = 12.0
DEFAULT_SOURCE_TIMEOUT = 8.0
DEFAULT_PER_SOURCE_LIMIT = 10


class SearchSource(Protocol):
    """What the coordinator needs from a source adapter."""

    @property
    def name(self) -> SourceName: ...

    async def search(self, query: str, limit: int) -> SourceOutcome: ...


class FanOutCoordinator:
    """
    Issues all source calls concurrently and collects typed outcomes.

    Args:
        adapters: One adapter per source
        global_timeout: Deadline for the whole fan-out (seconds)
        source_timeout: Deadline for a single source (seconds)
        per_source_limit: Default result cap passed to every adapter
    """

    def __init__(
        self,
        adapters: Sequence[SearchSource],
        global_timeout: float = DEFAULT_GLOBAL_TIMEOUT,
        source_timeout: float = DEFAULT_SOURCE_TIMEOUT,
        per_source_limit: int = DEFAULT_PER_SOURCE_LIMIT,
    ) -> None:
        names = [adapter.name for adapter in adapters]
        if len(set(names)) != len(names):
            raise ValueError("Only one adapter per source is allowed")
        self._adapters = list(adapters)
        self._global_timeout = global_timeout
        self._source_timeout = min(source_timeout, global_timeout)
        self._per_source_limit = per_source_limit

    @property
    def sources(self) -> list[SourceName]:
        return [adapter.name for adapter in self._adapters]

    async def run(self, plan: QueryPlan, limit: int | None = None) -> list[SourceOutcome]:
        """
        Query every adapter and return one outcome per adapter, in adapter order.

        Never raises for source failures. Cancelling the caller cancels all
        in-flight source calls.
        """
        limit = limit or self._per_source_limit
        if not self._adapters:
            return []

        started = time.perf_counter()
        tasks: dict[asyncio.Task[SourceOutcome], SearchSource] = {
            asyncio.create_task(
                self._run_one(adapter, plan.for_source(adapter.name), limit),
                name=f"fanout:{adapter.name.value}",
            ): adapter
            for adapter in self._adapters
        }

        try:
            done, pending = await asyncio.wait(tasks, timeout=self._global_timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            # Let cancelled tasks unwind so nothing is left running
            await asyncio.gather(*pending, return_exceptions=True)

        elapsed_ms = (time.perf_counter() - started) * 1000
        outcomes = [self._collect(task, adapter, task in done, elapsed_ms) for task, adapter in tasks.items()]

        degraded = [o.source.value for o in outcomes if o.degraded]
        if degraded:
            logger.warning(f"Fan-out degraded sources: {degraded}")
        logger.debug(f"Fan-out finished in {elapsed_ms:.0f}ms ({len(outcomes) - len(degraded)}/{len(outcomes)} ok)")
        return outcomes

    async def _run_one(self, adapter: SearchSource, query: str, limit: int) -> SourceOutcome:
        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(adapter.search(query, limit), timeout=self._source_timeout)
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(f"{adapter.name.value}: no response within {self._source_timeout:.1f}s")
            return SourceOutcome.failed(
                adapter.name,
                FailureKind.TIMEOUT,
                f"No response within {self._source_timeout:.1f}s",
                elapsed_ms=elapsed_ms,
            )
        except Exception as e:
            # Adapters report failures as outcomes; anything else is a bug in one adapter
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.exception(f"{adapter.name.value}: adapter raised unexpectedly")
            return SourceOutcome.failed(adapter.name, FailureKind.from_error(e), str(e), elapsed_ms=elapsed_ms)

        elapsed_ms = (time.perf_counter() - start) * 1000
        return dataclasses.replace(outcome, elapsed_ms=elapsed_ms)

    def _collect(
        self,
        task: asyncio.Task[SourceOutcome],
        adapter: SearchSource,
        finished: bool,
        elapsed_ms: float,
    ) -> SourceOutcome:
        if not finished or task.cancelled():
            logger.warning(f"{adapter.name.value}: abandoned at the {self._global_timeout:.1f}s fan-out deadline")
            return SourceOutcome.failed(
                adapter.name,
                FailureKind.TIMEOUT,
                f"Abandoned at the {self._global_timeout:.1f}s fan-out deadline",
                elapsed_ms=elapsed_ms,
            )
        return task.result()
