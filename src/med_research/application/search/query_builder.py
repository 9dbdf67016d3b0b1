"""
QueryBuilder - Per-source query plans from a free-text medical question.

This module analyzes the user's question to determine:
1. Meaningful keywords (stop words removed)
2. Clinical concepts, each with a bounded list of synonym alternatives
3. Query intent (treatment, prevention, diagnosis, prognosis, etiology)
4. A source-specific search string for every source

Architecture Decision:
    QueryBuilder is stateless and uses the versioned tables in ``vocabulary``.
    It does NOT call any external APIs (no MeSH lookup), so building a plan
    never fails for reasons outside the query itself. When the query cannot
    be understood the plan falls back to the verbatim text for every source.

Example:
    >>> plan = QueryBuilder().build("migraine treatment")
    >>> plan.for_source(SourceName.PUBMED)
    '(migraine[Title/Abstract] OR "migraine disorders"[Title/Abstract] ...) AND (...)'
    >>> plan.for_source(SourceName.CROSSREF)
    'migraine treatment'
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from med_research.domain.entities import SourceName
from med_research.shared.exceptions import InvalidQueryError

from . import vocabulary as vocab

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500
MAX_KEYWORDS = 10


class QueryIntent(Enum):
    """Clinical intent detected from the question."""

    TREATMENT = "treatment"
    PREVENTION = "prevention"
    DIAGNOSIS = "diagnosis"
    PROGNOSIS = "prognosis"
    ETIOLOGY = "etiology"
    GENERAL = "general"

    @property
    def is_interventional(self) -> bool:
        return self.value in vocab.INTERVENTIONAL_INTENTS


class QuerySyntax(Enum):
    """Search syntax understood by a source."""

    PUBMED = "pubmed"          # boolean + [Title/Abstract] field tags
    EUROPE_PMC = "europe_pmc"  # boolean + quoted phrases
    OPENFDA = "openfda"        # field:"value" clauses
    FREE_TEXT = "free_text"


SOURCE_SYNTAX: dict[SourceName, QuerySyntax] = {
    SourceName.PUBMED: QuerySyntax.PUBMED,
    SourceName.CLINICAL_GUIDELINES: QuerySyntax.PUBMED,
    SourceName.EUROPE_PMC: QuerySyntax.EUROPE_PMC,
    SourceName.COCHRANE: QuerySyntax.EUROPE_PMC,
    SourceName.FDA: QuerySyntax.OPENFDA,
    SourceName.CLINICAL_TRIALS: QuerySyntax.FREE_TEXT,
    SourceName.SEMANTIC_SCHOLAR: QuerySyntax.FREE_TEXT,
    SourceName.CROSSREF: QuerySyntax.FREE_TEXT,
    SourceName.OPENALEX: QuerySyntax.FREE_TEXT,
    SourceName.DOAJ: QuerySyntax.FREE_TEXT,
}

# openFDA label fields searched for each concept
FDA_FIELDS = ("indications_and_usage", "openfda.generic_name", "openfda.brand_name")


@dataclass(frozen=True)
class QueryConcept:
    """One concept of the question with its bounded synonym alternatives."""

    term: str
    alternatives: tuple[str, ...] = ()
    is_intent: bool = False

    @property
    def forms(self) -> tuple[str, ...]:
        return (self.term, *self.alternatives)


@dataclass
class QueryProfile:
    """
    What the rest of the pipeline needs to know about the question.

    Contains the concepts used for lexical matching and the intent used for
    the intent bonus/penalty.
    """

    original_query: str
    normalized_query: str
    keywords: list[str] = field(default_factory=list)
    concepts: list[QueryConcept] = field(default_factory=list)
    intent: QueryIntent = QueryIntent.GENERAL
    medical_terms: list[str] = field(default_factory=list)

    @property
    def meaningful_token_count(self) -> int:
        return len(self.keywords)

    @property
    def is_short(self) -> bool:
        """Fewer than 3 meaningful tokens after stop-word removal."""
        return self.meaningful_token_count < 3

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_query": self.original_query,
            "normalized_query": self.normalized_query,
            "keywords": self.keywords,
            "concepts": [{"term": c.term, "alternatives": list(c.alternatives)} for c in self.concepts],
            "intent": self.intent.value,
            "medical_terms": self.medical_terms,
        }


@dataclass
class QueryPlan:
    """Per-source search strings for one question."""

    profile: QueryProfile
    queries: dict[SourceName, str] = field(default_factory=dict)
    fallback: bool = False

    def for_source(self, source: SourceName) -> str:
        return self.queries.get(source) or self.profile.normalized_query

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict(),
            "queries": {source.value: q for source, q in self.queries.items()},
            "fallback": self.fallback,
            "vocabulary_version": vocab.VOCABULARY_VERSION,
        }


class QueryBuilder:
    """
    Builds per-source query plans.

    Concept expansion is bounded by ``max_alternatives`` so adding synonyms
    raises recall without diluting the query.
    """

    def __init__(self, max_alternatives: int = vocab.MAX_ALTERNATIVES_PER_CONCEPT) -> None:
        self._max_alternatives = max(0, max_alternatives)
        # Longest phrases first so "heart attack" wins over "attack"
        self._concept_keys = sorted(vocab.CONCEPT_SYNONYMS, key=len, reverse=True)

    def build(self, query: str, sources: list[SourceName] | None = None) -> QueryPlan:
        """
        Build a plan for ``sources`` (all sources by default).

        Raises:
            InvalidQueryError: Query is empty or longer than MAX_QUERY_LENGTH
        """
        normalized = self.validate(query)
        targets = sources or list(SourceName)

        try:
            profile = self.analyze(normalized)
            if not profile.concepts:
                logger.info(f"Query not classifiable, using verbatim text: {normalized!r}")
                return self._verbatim_plan(profile, targets)
            queries = {source: self._render(profile, SOURCE_SYNTAX[source]) for source in targets}
        except Exception as e:
            logger.warning(f"Query expansion failed, using verbatim text: {e}")
            return self._verbatim_plan(QueryProfile(original_query=query, normalized_query=normalized), targets)

        return QueryPlan(profile=profile, queries=queries)

    @staticmethod
    def validate(query: str) -> str:
        """Return the whitespace-normalized query or raise InvalidQueryError."""
        if not isinstance(query, str):
            raise InvalidQueryError(None, "Query must be a string")
        normalized = re.sub(r"\s+", " ", query).strip()
        if not normalized:
            raise InvalidQueryError(query)
        if len(normalized) > MAX_QUERY_LENGTH:
            raise InvalidQueryError(query, f"Query exceeds {MAX_QUERY_LENGTH} characters")
        return normalized

    def analyze(self, normalized: str) -> QueryProfile:
        """Extract keywords, concepts, intent and medical vocabulary from the query."""
        lowered = normalized.lower()
        keywords = self._extract_keywords(lowered)
        concepts = self._extract_concepts(lowered, keywords)
        intent = self._detect_intent(lowered)
        medical_terms = sorted(
            {
                form
                for concept in concepts
                if not concept.is_intent
                for form in concept.forms
                if form in vocab.MEDICAL_TERMS or vocab.stem(form) in vocab.MEDICAL_TERMS
            }
            | {
                kw
                for kw in keywords
                if not self._is_intent_word(kw)
                and (kw in vocab.MEDICAL_TERMS or vocab.stem(kw) in vocab.MEDICAL_TERMS)
            }
        )
        return QueryProfile(
            original_query=normalized,
            normalized_query=normalized,
            keywords=keywords,
            concepts=concepts,
            intent=intent,
            medical_terms=medical_terms,
        )

    def _extract_keywords(self, lowered: str) -> list[str]:
        keywords: list[str] = []
        for token in vocab.tokenize(lowered):
            token = vocab.strip_contraction(token)
            if token in vocab.STOP_WORDS or len(token) < 2 or token.isdigit():
                continue
            if token not in keywords:
                keywords.append(token)
        return keywords[:MAX_KEYWORDS]

    def _extract_concepts(self, lowered: str, keywords: list[str]) -> list[QueryConcept]:
        """Known multi-word concepts first, then every uncovered keyword."""
        concepts: list[QueryConcept] = []
        covered: set[str] = set()
        remaining = lowered

        for key in self._concept_keys:
            pattern = rf"\b{re.escape(key)}\b"
            if re.search(pattern, remaining):
                alternatives = vocab.CONCEPT_SYNONYMS[key][: self._max_alternatives]
                concepts.append(QueryConcept(key, alternatives, is_intent=self._is_intent_word(key)))
                covered.update(vocab.tokenize(key))
                remaining = re.sub(pattern, " ", remaining)

        for keyword in keywords:
            if keyword in covered:
                continue
            concepts.append(QueryConcept(keyword, (), is_intent=self._is_intent_word(keyword)))
            covered.add(keyword)

        # Keep the user's word order
        return sorted(concepts, key=lambda c: self._position(lowered, c.term))

    @staticmethod
    def _position(lowered: str, term: str) -> int:
        index = lowered.find(term)
        return index if index >= 0 else len(lowered)

    @staticmethod
    def _is_intent_word(term: str) -> bool:
        return any(term in triggers for triggers in vocab.INTENT_QUERY_TRIGGERS.values())

    def _detect_intent(self, lowered: str) -> QueryIntent:
        tokens = vocab.token_set(lowered)
        for name in vocab.INTENT_PRIORITY:
            if vocab.matching_terms(vocab.INTENT_QUERY_TRIGGERS[name], lowered, tokens):
                return QueryIntent(name)
        return QueryIntent.GENERAL

    # =========================================================================
    # Rendering
    # =========================================================================

    def _render(self, profile: QueryProfile, syntax: QuerySyntax) -> str:
        match syntax:
            case QuerySyntax.PUBMED:
                return self._render_boolean(profile.concepts, self._pubmed_term)
            case QuerySyntax.EUROPE_PMC:
                return self._render_boolean(profile.concepts, self._quoted)
            case QuerySyntax.OPENFDA:
                return self._render_openfda(profile.concepts)
            case _:
                return " ".join(profile.keywords) or profile.normalized_query

    @staticmethod
    def _render_boolean(concepts: list[QueryConcept], format_term) -> str:
        groups = []
        for concept in concepts:
            forms = [format_term(form) for form in concept.forms]
            groups.append(forms[0] if len(forms) == 1 else f"({' OR '.join(forms)})")
        return " AND ".join(groups)

    @staticmethod
    def _quoted(term: str) -> str:
        if re.fullmatch(r"[a-z0-9]+", term):
            return term
        escaped = term.replace('"', "")
        return f'"{escaped}"'

    def _pubmed_term(self, term: str) -> str:
        return f"{self._quoted(term)}[Title/Abstract]"

    def _render_openfda(self, concepts: list[QueryConcept]) -> str:
        # Labels describe conditions and drugs; intent words add nothing there.
        subjects = [c for c in concepts if not c.is_intent] or concepts
        clauses = []
        for concept in subjects:
            term = concept.term.replace('"', "")
            fields = " OR ".join(f'{name}:"{term}"' for name in FDA_FIELDS)
            clauses.append(f"({fields})")
        return " AND ".join(clauses)

    @staticmethod
    def _verbatim_plan(profile: QueryProfile, targets: list[SourceName]) -> QueryPlan:
        return QueryPlan(
            profile=profile,
            queries={source: profile.normalized_query for source in targets},
            fallback=True,
        )


def build_query_plan(query: str) -> QueryPlan:
    """Build a plan for all sources (convenience function)."""
    return QueryBuilder().build(query)
