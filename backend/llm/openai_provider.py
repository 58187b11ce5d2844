"""
OpenAI LLM Provider

Runs every request in JSON mode, since all pipeline stages expect a JSON
object back. SDK errors are mapped onto the LLM exception hierarchy so the
structured completion layer can decide what to retry.
"""

import logging
import re
from typing import Optional

import openai

from exceptions import LLMConnectionError, LLMProviderError, LLMRateLimitError

from .base import BaseLLMProvider

logger = logging.getLogger(__name__)


def _sanitize_error(error: str) -> str:
    """Remove API keys from error text and cap its length."""
    sanitized = re.sub(r"(sk-|api[_-]?key)[a-zA-Z0-9\-_]{10,}", "[redacted]", error, flags=re.IGNORECASE)
    return sanitized[:200]


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions; gpt-4o-mini unless DEFAULT_LLM_MODEL says otherwise."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, api_key: str, model: Optional[str] = None, client=None):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self.model

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as e:
            retry_after = e.response.headers.get("retry-after")
            raise LLMRateLimitError(
                provider=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            ) from e
        except openai.APIConnectionError as e:
            logger.error(f"OpenAI not reachable: {type(e).__name__}")
            raise LLMConnectionError(provider=self.name, message="OpenAI API not reachable") from e
        except openai.APIError as e:
            message = _sanitize_error(str(e))
            logger.error(f"OpenAI API error ({type(e).__name__}): {message}")
            raise LLMProviderError(
                message=f"OpenAI request failed: {message}",
                provider=self.name,
                details={"status_code": getattr(e, "status_code", None)},
            ) from e

        return response.choices[0].message.content or ""

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.close()
            finally:
                self._client = None
