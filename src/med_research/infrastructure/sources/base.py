"""
SourceAdapter - The boundary between one external database and the pipeline.

``search()`` never raises. It returns a SourceOutcome holding either the
normalized candidates or a typed failure. Individual items that cannot be
normalized are skipped and counted; only a wholly-failed response turns the
outcome into a failure.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, ClassVar

from med_research.domain.entities import Candidate, FailureKind, SourceName, SourceOutcome
from med_research.shared.exceptions import MedResearchError, ParseError

from .base_client import BaseAPIClient

logger = logging.getLogger(__name__)

# Per-item errors that mean "this record is malformed", not "the source is down"
ITEM_ERRORS = (ValueError, TypeError, KeyError, AttributeError, IndexError)


class SourceAdapter(ABC):
    """
    Base class for all source adapters.

    Subclasses set ``source`` and implement:
    - ``_fetch(query, limit)``: raw items in the source's relevance order
    - ``_parse_item(item, position)``: one Candidate, or None to skip the item
    """

    source: ClassVar[SourceName]

    @property
    def name(self) -> SourceName:
        return self.source

    def prepare_query(self, query: str) -> str:
        """Hook for sources that add fixed filters to every query."""
        return query

    async def search(self, query: str, limit: int) -> SourceOutcome:
        """Search the source. Returns a typed outcome; never raises past this boundary."""
        start = time.perf_counter()
        try:
            items = await self._fetch(self.prepare_query(query), limit)
        except MedResearchError as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            failure = FailureKind.from_error(e)
            logger.warning(f"{self.source.value}: {failure.value}: {e}")
            return SourceOutcome.failed(self.source, failure, str(e), elapsed_ms=elapsed_ms)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            failure = FailureKind.from_error(e)
            logger.exception(f"{self.source.value}: unexpected error ({failure.value})")
            return SourceOutcome.failed(self.source, failure, str(e), elapsed_ms=elapsed_ms)

        candidates, skipped = self._normalize(items, limit)
        elapsed_ms = (time.perf_counter() - start) * 1000
        if skipped:
            logger.warning(f"{self.source.value}: skipped {skipped} malformed item(s)")
        logger.debug(f"{self.source.value}: {len(candidates)} candidates in {elapsed_ms:.0f}ms")
        return SourceOutcome.success(self.source, candidates, elapsed_ms=elapsed_ms, skipped_items=skipped)

    def _normalize(self, items: Iterable[Any], limit: int) -> tuple[list[Candidate], int]:
        candidates: list[Candidate] = []
        skipped = 0
        for item in items:
            if len(candidates) >= limit:
                break
            try:
                candidate = self._parse_item(item, len(candidates))
            except ITEM_ERRORS as e:
                logger.debug(f"{self.source.value}: unparseable item: {e}")
                skipped += 1
                continue
            if candidate is None:
                skipped += 1
                continue
            candidates.append(candidate)
        return candidates, skipped

    @abstractmethod
    async def _fetch(self, query: str, limit: int) -> list[Any]:
        """Return raw result items. Raise a MedResearchError on a wholly-failed response."""

    @abstractmethod
    def _parse_item(self, item: Any, position: int) -> Candidate | None:
        """Normalize one raw item."""

    async def close(self) -> None:
        """Release network resources."""


class HttpSourceAdapter(BaseAPIClient, SourceAdapter):
    """SourceAdapter backed by a JSON HTTP API through BaseAPIClient."""

    @staticmethod
    def _require_list(payload: Any, *path: str) -> list[Any]:
        """Walk ``path`` into a JSON payload and return the list found there."""
        node = payload
        for key in path:
            if not isinstance(node, dict):
                raise ParseError(f"expected an object at {'.'.join(path)}")
            node = node.get(key)
        if node is None:
            return []
        if not isinstance(node, list):
            raise ParseError(f"expected a list at {'.'.join(path)}, got {type(node).__name__}")
        return node
