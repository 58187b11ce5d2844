"""
Anthropic Claude LLM Provider
"""

import logging
import re
from typing import Optional

import anthropic

from exceptions import LLMConnectionError, LLMProviderError, LLMRateLimitError

from .base import BaseLLMProvider

logger = logging.getLogger(__name__)


class ClaudeProvider(BaseLLMProvider):
    """
    Anthropic Messages API provider.

    The API has no JSON mode; the structured completion layer appends a
    JSON-only instruction to the system prompt and strips any surrounding prose.
    """

    DEFAULT_MODEL = "claude-3-5-haiku-latest"

    def __init__(self, api_key: str, model: Optional[str] = None, client=None):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return self.model

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        kwargs = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            retry_after = e.response.headers.get("retry-after")
            raise LLMRateLimitError(
                provider=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            ) from e
        except anthropic.APIConnectionError as e:
            logger.error(f"Anthropic not reachable: {type(e).__name__}")
            raise LLMConnectionError(provider=self.name, message="Anthropic API not reachable") from e
        except anthropic.APIError as e:
            # Don't log the raw error, it may echo the API key
            message = self._sanitize_error(str(e))
            logger.error(f"Claude API error ({type(e).__name__}): {message}")
            raise LLMProviderError(
                message=f"Anthropic request failed: {message}",
                provider=self.name,
                details={"status_code": getattr(e, "status_code", None)},
            ) from e

        return "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")

    @staticmethod
    def _sanitize_error(error: str) -> str:
        sanitized = re.sub(r"(sk-ant-|api[_-]?key)[a-zA-Z0-9\-_]{10,}", "[redacted]", error, flags=re.IGNORECASE)
        return sanitized[:200]

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.close()
            finally:
                self._client = None
