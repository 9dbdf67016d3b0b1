"""
ChatCompletionClient - OpenAI-compatible completion service (Together AI by default).
"""

from __future__ import annotations

import logging
from typing import Any

from med_research.shared.exceptions import ConfigurationError, ParseError
from med_research.shared.settings import DEFAULT_LLM_BASE_URL

from .sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.3


class ChatCompletionClient(BaseAPIClient):
    """
    OpenAI-compatible ``/chat/completions`` client.

    Args:
        api_key: Bearer token (required)
        base_url: API root, e.g. https://api.together.xyz/v1
        max_tokens: Completion length cap
        temperature: Sampling temperature
    """

    _service_name = "Completion API"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_LLM_BASE_URL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        if not api_key:
            raise ConfigurationError("An API key is required for answer synthesis (TOGETHER_API_KEY)")
        self._max_tokens = max_tokens
        self._temperature = temperature
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            **kwargs,
        )

    async def complete(self, prompt: str, model: str, *, system: str | None = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        logger.debug(f"{self._service_name}: requesting completion from {model} ({len(prompt)} chars)")

        data = await self._make_request(
            "/chat/completions",
            method="POST",
            data={
                "model": model,
                "messages": messages,
                "max_tokens": self._max_tokens,
                "temperature": self._temperature,
                "stream": False,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError("completion response has no message content", source=self._service_name) from e
        if not isinstance(content, str) or not content.strip():
            raise ParseError("completion response is empty", source=self._service_name)
        return content.strip()
