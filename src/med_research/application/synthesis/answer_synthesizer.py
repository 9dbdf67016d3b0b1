"""
AnswerSynthesizer - Prompt building and the completion-service boundary.

The language model is an external collaborator: anything that implements
CompletionClient can be injected; the bundled OpenAI-compatible one lives in
med_research.infrastructure.completion.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from med_research.domain.entities import Citation
from med_research.shared.settings import DEFAULT_LLM_MODEL

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a medical research assistant. Answer the question using only the "
    "numbered sources provided. Cite sources inline as [1], [2], ... and prefer "
    "higher evidence levels when sources disagree. If the sources do not answer "
    "the question, say so instead of guessing."
)

LOW_CONFIDENCE_NOTE = (
    "NOTE: Few relevant sources were found. State clearly that the evidence is "
    "limited and that the answer is low-confidence."
)


class CompletionClient(Protocol):
    """Text-completion service: prompt + model id in, text out."""

    async def complete(self, prompt: str, model: str, *, system: str | None = None) -> str: ...


class AnswerSynthesizer:
    """
    Formats the final citation list into a prompt and asks the model for an answer.

    Example:
        synthesizer = AnswerSynthesizer(ChatCompletionClient(api_key=key))
        answer = await synthesizer.synthesize("migraine treatment", result.citations)
    """

    def __init__(self, client: CompletionClient, model: str = DEFAULT_LLM_MODEL) -> None:
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def build_prompt(
        self,
        query: str,
        citations: Sequence[Citation],
        low_confidence: bool = False,
        degraded_sources: Sequence[str] = (),
    ) -> str:
        """Question, numbered sources and answering instructions as one prompt."""
        lines = [f"Question: {query.strip()}", ""]

        if citations:
            lines.append("Sources:")
            for number, citation in enumerate(citations, start=1):
                lines.append(self._format_citation(number, citation))
        else:
            lines.append("Sources: none found.")

        if degraded_sources:
            lines += ["", f"Unavailable databases for this search: {', '.join(degraded_sources)}."]
        if low_confidence:
            lines += ["", LOW_CONFIDENCE_NOTE]

        lines += ["", "Answer the question, citing the sources by number."]
        return "\n".join(lines)

    @staticmethod
    def _format_citation(number: int, citation: Citation) -> str:
        parts = [f"[{number}] {citation.title}"]
        parts.append(citation.author_string.rstrip("."))
        if citation.journal or citation.year:
            parts.append(" ".join(str(p) for p in (citation.journal, citation.year) if p))
        if citation.identifier:
            parts.append(citation.identifier)
        parts.append(citation.evidence_tier)
        return ". ".join(parts)

    async def synthesize(
        self,
        query: str,
        citations: Sequence[Citation],
        low_confidence: bool = False,
        degraded_sources: Sequence[str] = (),
    ) -> str:
        """Build the prompt and return the model's answer."""
        prompt = self.build_prompt(query, citations, low_confidence, degraded_sources)
        logger.debug(f"Synthesizing answer with {len(citations)} citation(s) via {self._model}")
        return await self._client.complete(prompt, self._model, system=SYSTEM_PROMPT)
