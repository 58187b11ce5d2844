"""
Tests for the OpenAI and Anthropic providers with mocked SDK clients.
"""

import anthropic
import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock

from config import Settings
from exceptions import LLMConnectionError, LLMProviderError, LLMRateLimitError
from llm.claude_provider import ClaudeProvider
from llm.factory import create_llm_provider
from llm.openai_provider import OpenAIProvider


def _request(url: str) -> httpx.Request:
    return httpx.Request("POST", url)


def openai_client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    return client


def anthropic_client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.messages.create = create
    client.close = AsyncMock()
    return client


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_json_mode_request(self):
        message = MagicMock(content='{"accepted": []}')
        create = AsyncMock(return_value=MagicMock(choices=[MagicMock(message=message)]))
        provider = OpenAIProvider(api_key="sk-test", client=openai_client(create))

        text = await provider.generate("Validate", system_prompt="You validate", temperature=0.3)

        assert text == '{"accepted": []}'
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "You validate"}

    @pytest.mark.asyncio
    async def test_rate_limit_mapped(self):
        request = _request("https://api.openai.com/v1/chat/completions")
        response = httpx.Response(429, headers={"retry-after": "3"}, request=request)
        create = AsyncMock(side_effect=openai.RateLimitError("slow down", response=response, body=None))
        provider = OpenAIProvider(api_key="sk-test", client=openai_client(create))

        with pytest.raises(LLMRateLimitError) as exc_info:
            await provider.generate("hi")
        assert exc_info.value.retry_after == 3

    @pytest.mark.asyncio
    async def test_connection_error_mapped(self):
        error = openai.APIConnectionError(request=_request("https://api.openai.com/v1/chat/completions"))
        provider = OpenAIProvider(api_key="sk-test", client=openai_client(AsyncMock(side_effect=error)))

        with pytest.raises(LLMConnectionError):
            await provider.generate("hi")

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        client = openai_client(AsyncMock())
        provider = OpenAIProvider(api_key="sk-test", client=client)

        await provider.close()

        client.close.assert_awaited_once()
        assert provider._client is None


class TestClaudeProvider:
    @pytest.mark.asyncio
    async def test_system_prompt_and_text_blocks(self):
        blocks = [MagicMock(type="text", text='{"entities": '), MagicMock(type="text", text="[]}")]
        create = AsyncMock(return_value=MagicMock(content=blocks))
        provider = ClaudeProvider(api_key="sk-ant-test", client=anthropic_client(create))

        text = await provider.generate("Extract", system_prompt="You extract", max_tokens=256)

        assert text == '{"entities": []}'
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "You extract"
        assert kwargs["max_tokens"] == 256
        assert kwargs["messages"] == [{"role": "user", "content": "Extract"}]

    @pytest.mark.asyncio
    async def test_server_error_mapped(self):
        request = _request("https://api.anthropic.com/v1/messages")
        response = httpx.Response(500, request=request)
        error = anthropic.InternalServerError("overloaded", response=response, body=None)
        provider = ClaudeProvider(api_key="sk-ant-test", client=anthropic_client(AsyncMock(side_effect=error)))

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.generate("hi")
        assert exc_info.value.details["status_code"] == 500


class TestFactory:
    def test_ollama_needs_no_key(self):
        provider = create_llm_provider("ollama", Settings(default_llm_model="mistral:7b"))
        assert provider.name == "ollama"
        assert provider.default_model == "mistral:7b"

    def test_hosted_provider_requires_key(self):
        with pytest.raises(ValueError):
            create_llm_provider("openai", Settings(openai_api_key=""))

    def test_model_only_applies_to_default_provider(self):
        settings = Settings(default_llm_provider="ollama", default_llm_model="llama3.1:8b", anthropic_api_key="k")
        provider = create_llm_provider("anthropic", settings)
        assert provider.default_model == ClaudeProvider.DEFAULT_MODEL

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_llm_provider("gemini", Settings())
