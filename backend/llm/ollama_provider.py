"""
Ollama LLM Provider

Talks to a local Ollama server over its HTTP chat API.
Default model: llama3.1:8b
"""

import logging
from typing import Optional

import httpx

from exceptions import LLMConnectionError, LLMProviderError, LLMRateLimitError

from .base import BaseLLMProvider

logger = logging.getLogger(__name__)


class OllamaProvider(BaseLLMProvider):
    """
    Ollama LLM provider.

    Uses ``POST /api/chat`` with streaming disabled, and ``GET /api/tags``
    for health checks.
    """

    DEFAULT_MODEL = "llama3.1:8b"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model or self.DEFAULT_MODEL
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self.model

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        """Generate response using the Ollama chat API."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": model or self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

        try:
            response = await self.client.post("/api/chat", json=payload)
        except httpx.ConnectError as e:
            logger.error(f"Ollama server not reachable at {self.base_url}: {e}")
            raise LLMConnectionError(
                provider=self.name,
                message="Ollama server not running. Start it with: ollama serve",
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Ollama request error ({type(e).__name__}): {e}")
            raise LLMProviderError(
                message=f"Ollama request failed: {type(e).__name__}",
                provider=self.name,
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise LLMRateLimitError(
                provider=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 400:
            logger.error(f"Ollama API error {response.status_code}: {response.text[:200]}")
            raise LLMProviderError(
                message=f"Ollama returned HTTP {response.status_code}",
                provider=self.name,
                details={"status_code": response.status_code},
            )

        data = response.json()
        return (data.get("message") or {}).get("content", "")

    async def health_check(self) -> bool:
        """Check whether the Ollama server answers on /api/tags."""
        try:
            response = await self.client.get("/api/tags", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Ollama health check failed: {type(e).__name__}")
            return False

    async def warmup(self) -> None:
        """Load the model into memory with a tiny request."""
        try:
            await self.generate("Hello", max_tokens=1, temperature=0.0)
            logger.info(f"Ollama model {self.model} warmed up")
        except LLMProviderError as e:
            logger.warning(f"Ollama warmup failed: {e.message}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
