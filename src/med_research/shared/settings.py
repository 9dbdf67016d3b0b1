"""
Pipeline configuration loaded from environment variables.

Environment Variables:
    NCBI_EMAIL: Email for NCBI Entrez (required by NCBI)
    NCBI_API_KEY: Optional NCBI key (10 req/s instead of 3)
    CROSSREF_EMAIL: Polite-pool email for CrossRef/OpenAlex
    SEMANTIC_SCHOLAR_API_KEY: Optional Semantic Scholar key
    OPENFDA_API_KEY: Optional openFDA key
    TOGETHER_API_KEY: Key for the answer synthesis model
    MEDRESEARCH_LLM_MODEL: Model id used for answer synthesis
    MEDRESEARCH_GLOBAL_TIMEOUT: Fan-out deadline in seconds (default 12)
    MEDRESEARCH_SOURCE_TIMEOUT: Per-source deadline in seconds (default 8)
    MEDRESEARCH_PER_SOURCE_LIMIT: Results requested per source (default 10)
    MEDRESEARCH_MAX_CITATIONS: Default citation cap (default 10, hard cap 12)
    MEDRESEARCH_MIN_CITATIONS: Below this the result is low-confidence (default 3)
    MEDRESEARCH_RELEVANCE_FLOOR: Minimum relevance score (default 0.3)
    MEDRESEARCH_ENABLED_SOURCES: Comma-separated source names (default: all)
    MEDRESEARCH_SOURCE_PRIORITY: Comma-separated source names, most preferred first
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields

from med_research.domain.entities import DEFAULT_SOURCE_PRIORITY, SourceName

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_EMAIL = "med-research-pipeline@example.com"
DEFAULT_LLM_MODEL = "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free"
DEFAULT_LLM_BASE_URL = "https://api.together.xyz/v1"
HARD_MAX_CITATIONS = 12


def _parse_sources(raw: str, variable: str) -> tuple[SourceName, ...]:
    try:
        return tuple(SourceName.parse(part) for part in raw.split(",") if part.strip())
    except ValueError as e:
        raise ConfigurationError(f"{variable}: {e}") from e


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class PipelineSettings:
    """Runtime settings for one pipeline instance."""

    email: str = DEFAULT_EMAIL
    ncbi_api_key: str | None = None
    crossref_email: str | None = None
    semantic_scholar_api_key: str | None = None
    openfda_api_key: str | None = None
    llm_api_key: str | None = None
    llm_model: str = DEFAULT_LLM_MODEL
    llm_base_url: str = DEFAULT_LLM_BASE_URL

    global_timeout: float = 12.0
    source_timeout: float = 8.0
    per_source_limit: int = 10
    max_citations: int = 10
    min_citations: int = 3
    relevance_floor: float = 0.3

    enabled_sources: tuple[SourceName, ...] = DEFAULT_SOURCE_PRIORITY
    source_priority: tuple[SourceName, ...] = DEFAULT_SOURCE_PRIORITY

    def __post_init__(self) -> None:
        if self.global_timeout <= 0 or self.source_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if not 1 <= self.max_citations <= HARD_MAX_CITATIONS:
            raise ConfigurationError(f"max_citations must be between 1 and {HARD_MAX_CITATIONS}")
        if self.min_citations < 0:
            raise ConfigurationError("min_citations must not be negative")
        if not 0.0 <= self.relevance_floor <= 1.0:
            raise ConfigurationError("relevance_floor must be within [0, 1]")
        if self.per_source_limit < 1:
            raise ConfigurationError("per_source_limit must be at least 1")
        if not self.enabled_sources:
            raise ConfigurationError("At least one source must be enabled")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> PipelineSettings:
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if env is None else env

        enabled = DEFAULT_SOURCE_PRIORITY
        if env.get("MEDRESEARCH_ENABLED_SOURCES", "").strip():
            enabled = _parse_sources(env["MEDRESEARCH_ENABLED_SOURCES"], "MEDRESEARCH_ENABLED_SOURCES")
        priority = DEFAULT_SOURCE_PRIORITY
        if env.get("MEDRESEARCH_SOURCE_PRIORITY", "").strip():
            priority = _parse_sources(env["MEDRESEARCH_SOURCE_PRIORITY"], "MEDRESEARCH_SOURCE_PRIORITY")

        email = env.get("NCBI_EMAIL", "").strip() or DEFAULT_EMAIL
        return cls(
            email=email,
            ncbi_api_key=env.get("NCBI_API_KEY", "").strip() or None,
            crossref_email=env.get("CROSSREF_EMAIL", "").strip() or email,
            semantic_scholar_api_key=env.get("SEMANTIC_SCHOLAR_API_KEY", "").strip() or None,
            openfda_api_key=env.get("OPENFDA_API_KEY", "").strip() or None,
            llm_api_key=env.get("TOGETHER_API_KEY", "").strip() or None,
            llm_model=env.get("MEDRESEARCH_LLM_MODEL", "").strip() or DEFAULT_LLM_MODEL,
            global_timeout=_get_float(env, "MEDRESEARCH_GLOBAL_TIMEOUT", 12.0),
            source_timeout=_get_float(env, "MEDRESEARCH_SOURCE_TIMEOUT", 8.0),
            per_source_limit=_get_int(env, "MEDRESEARCH_PER_SOURCE_LIMIT", 10),
            max_citations=_get_int(env, "MEDRESEARCH_MAX_CITATIONS", 10),
            min_citations=_get_int(env, "MEDRESEARCH_MIN_CITATIONS", 3),
            relevance_floor=_get_float(env, "MEDRESEARCH_RELEVANCE_FLOOR", 0.3),
            enabled_sources=enabled,
            source_priority=priority,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PipelineSettings:
        """Inverse of ``to_dict``; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        for key in ("enabled_sources", "source_priority"):
            if key in values:
                raw = values[key]
                if isinstance(raw, str):
                    values[key] = _parse_sources(raw, key)
                else:
                    try:
                        values[key] = tuple(SourceName.parse(s) for s in raw)  # type: ignore[union-attr]
                    except ValueError as e:
                        raise ConfigurationError(f"{key}: {e}") from e
        return cls(**values)  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, object]:
        """Plain dict for ``providers.Configuration().from_dict``."""
        data = asdict(self)
        data["enabled_sources"] = [s.value for s in self.enabled_sources]
        data["source_priority"] = [s.value for s in self.source_priority]
        return data
