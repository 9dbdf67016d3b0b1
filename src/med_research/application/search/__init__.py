"""
Multi-source Research Retrieval

Architecture:
    User Query
        │
        ▼
    ┌───────────────────┐
    │   QueryBuilder    │  ← Concepts, synonyms, intent, per-source syntax
    └─────────┬─────────┘
              │
              ▼
    ┌───────────────────┐
    │ FanOutCoordinator │  ← One task per source, global deadline
    └─────────┬─────────┘
              │
    ┌─────────┼─────────┐
    ▼         ▼         ▼
  PubMed  Europe PMC  CrossRef ...  ← Typed SourceOutcome each
    │         │         │
    └─────────┼─────────┘
              ▼
    Deduplicator → RelevanceScorer → EvidenceClassifier → Selector
              │
              ▼
         Citation[]
"""

from __future__ import annotations

from .deduplicator import DeduplicationStats, Deduplicator, deduplicate_candidates
from .evidence_classifier import EvidenceClassifier
from .fanout import FanOutCoordinator, SearchSource
from .pipeline import PipelineStats, ResearchPipeline, ResearchResult
from .query_builder import (
    QueryBuilder,
    QueryConcept,
    QueryIntent,
    QueryPlan,
    QueryProfile,
    QuerySyntax,
    build_query_plan,
)
from .relevance_scorer import RelevanceBreakdown, RelevanceScorer, ScoringConfig
from .selector import SelectionResult, Selector

__all__ = [
    # Query building
    "QueryBuilder",
    "QueryConcept",
    "QueryIntent",
    "QueryPlan",
    "QueryProfile",
    "QuerySyntax",
    "build_query_plan",
    # Fan-out
    "FanOutCoordinator",
    "SearchSource",
    # Ranking stages
    "Deduplicator",
    "DeduplicationStats",
    "deduplicate_candidates",
    "RelevanceScorer",
    "RelevanceBreakdown",
    "ScoringConfig",
    "EvidenceClassifier",
    "Selector",
    "SelectionResult",
    # Orchestration
    "ResearchPipeline",
    "ResearchResult",
    "PipelineStats",
]
