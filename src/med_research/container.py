"""
Application DI Container (dependency-injector).

Centralizes creation of the pipeline stages and the source adapters.

Usage::

    from med_research.container import ApplicationContainer
    from med_research.shared.settings import PipelineSettings

    container = ApplicationContainer()
    container.config.from_dict(PipelineSettings.from_env().to_dict())

    pipeline = container.pipeline()
    result = await pipeline.research("migraine treatment")

    # In tests - override any provider:
    container.adapters.override(providers.Object([fake_adapter]))
"""

from __future__ import annotations

import logging
from typing import Any

from dependency_injector import containers, providers

from med_research.application.search import (
    Deduplicator,
    EvidenceClassifier,
    FanOutCoordinator,
    QueryBuilder,
    RelevanceScorer,
    ResearchPipeline,
    Selector,
)
from med_research.application.synthesis import AnswerSynthesizer
from med_research.domain.entities import SourceName
from med_research.shared.settings import PipelineSettings

logger = logging.getLogger(__name__)


def _create_settings(values: dict[str, Any]) -> PipelineSettings:
    return PipelineSettings.from_dict(values or {})


def _create_adapters(settings: PipelineSettings) -> list:
    """Lazy factory for the source adapters (avoids importing Bio/httpx at import time)."""
    from med_research.infrastructure.sources import create_default_adapters

    return create_default_adapters(settings)


def _create_deduplicator(source_priority: list[str] | None) -> Deduplicator:
    priority = [SourceName.parse(name) for name in source_priority] if source_priority else None
    return Deduplicator(priority)


def _create_completion_client(api_key: str | None, base_url: str) -> object:
    """Lazy factory for the completion client."""
    from med_research.infrastructure.completion import ChatCompletionClient

    return ChatCompletionClient(api_key=api_key, base_url=base_url)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the research pipeline.

    Manages creation and lifecycle of:
    - ``adapters``: one SourceAdapter per enabled source
    - ``pipeline``: query -> citations orchestration
    - ``synthesizer``: prompt building + completion client
    """

    config = providers.Configuration()

    settings = providers.Singleton(_create_settings, config)

    adapters = providers.Singleton(_create_adapters, settings=settings)

    coordinator = providers.Singleton(
        FanOutCoordinator,
        adapters=adapters,
        global_timeout=config.global_timeout,
        source_timeout=config.source_timeout,
        per_source_limit=config.per_source_limit,
    )

    query_builder = providers.Singleton(QueryBuilder)

    deduplicator = providers.Singleton(_create_deduplicator, source_priority=config.source_priority)

    scorer = providers.Singleton(RelevanceScorer)

    classifier = providers.Singleton(EvidenceClassifier)

    selector = providers.Singleton(
        Selector,
        max_citations=config.max_citations,
        min_citations=config.min_citations,
        relevance_floor=config.relevance_floor,
    )

    pipeline = providers.Singleton(
        ResearchPipeline,
        coordinator=coordinator,
        query_builder=query_builder,
        deduplicator=deduplicator,
        scorer=scorer,
        classifier=classifier,
        selector=selector,
    )

    completion_client = providers.Singleton(
        _create_completion_client,
        api_key=config.llm_api_key,
        base_url=config.llm_base_url,
    )

    synthesizer = providers.Singleton(
        AnswerSynthesizer,
        client=completion_client,
        model=config.llm_model,
    )


def create_container(settings: PipelineSettings | None = None) -> ApplicationContainer:
    """Container configured from ``settings`` (environment by default)."""
    container = ApplicationContainer()
    container.config.from_dict((settings or PipelineSettings.from_env()).to_dict())
    return container


__all__ = ["ApplicationContainer", "create_container"]
