"""
Tests for the Ollama provider's HTTP handling.
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock

from exceptions import CompletionError, LLMConnectionError, LLMProviderError, LLMRateLimitError
from llm.ollama_provider import OllamaProvider
from llm.structured import StructuredCompletion
from retry_policy import RetryPolicy


def provider_with(handler) -> OllamaProvider:
    client = httpx.AsyncClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler))
    return OllamaProvider(base_url="http://ollama.test", model="llama3.1:8b", client=client)


class TestOllamaProvider:
    @pytest.mark.asyncio
    async def test_generate_sends_chat_payload(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": '{"entities": []}'}})

        provider = provider_with(handler)
        text = await provider.generate("Extract", system_prompt="You extract", max_tokens=64, temperature=0.1)

        assert text == '{"entities": []}'
        assert requests[0].url.path == "/api/chat"
        payload = json.loads(requests[0].content)
        assert payload["model"] == "llama3.1:8b"
        assert payload["stream"] is False
        assert payload["messages"] == [
            {"role": "system", "content": "You extract"},
            {"role": "user", "content": "Extract"},
        ]
        assert payload["options"] == {"temperature": 0.1, "num_predict": 64}

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        provider = provider_with(lambda request: httpx.Response(429, headers={"Retry-After": "7"}))

        with pytest.raises(LLMRateLimitError) as exc_info:
            await provider.generate("hi")
        assert exc_info.value.retry_after == 7

    @pytest.mark.asyncio
    async def test_server_error(self):
        provider = provider_with(lambda request: httpx.Response(500, text="model crashed"))

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.generate("hi")
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LLMConnectionError):
            await provider_with(handler).generate("hi")

    @pytest.mark.asyncio
    async def test_health_check(self):
        healthy = provider_with(lambda request: httpx.Response(200, json={"models": []}))
        down = provider_with(lambda request: httpx.Response(503))

        assert await healthy.health_check() is True
        assert await down.health_check() is False


class TestOllamaStructuredCompletion:
    @pytest.mark.asyncio
    async def test_recovers_after_refused_connection(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": '{"a": 1}'}})

        sleep = AsyncMock()
        completion = StructuredCompletion(
            provider_with(handler),
            retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5, multiplier=2.0),
            sleep=sleep,
        )

        assert await completion.complete("system", "user") == {"a": 1}
        assert len(calls) == 2
        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_backend_down_for_every_attempt(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        completion = StructuredCompletion(
            provider_with(handler),
            retry_policy=RetryPolicy(max_attempts=3, base_delay=0.0),
            sleep=AsyncMock(),
        )

        with pytest.raises(CompletionError) as exc_info:
            await completion.complete("system", "user")
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, LLMConnectionError)
