"""
Tests for structured completion: JSON recovery, retries, circuit breaker.
"""

import pytest
from pydantic import BaseModel
from unittest.mock import AsyncMock

from exceptions import CompletionError, LLMConnectionError, LLMResponseParseError, LLMUnavailableError
from llm.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from llm.structured import StructuredCompletion, parse_json_response
from retry_policy import RetryPolicy

from fakes import ScriptedProvider


class Answer(BaseModel):
    value: int


class TestParseJsonResponse:
    """Tests for parse_json_response."""

    def test_plain_json(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"entities": [], "relationships": []}\n```\nDone.'
        assert parse_json_response(text) == {"entities": [], "relationships": []}

    def test_commentary_around_object(self):
        text = 'Sure! The result is {"a": {"b": 2}} as requested.'
        assert parse_json_response(text) == {"a": {"b": 2}}

    def test_trailing_commas_removed(self):
        assert parse_json_response('{"items": [1, 2, 3,],}') == {"items": [1, 2, 3]}

    def test_top_level_array(self):
        assert parse_json_response("result: [1, 2]") == [1, 2]

    def test_empty_response_raises(self):
        with pytest.raises(LLMResponseParseError):
            parse_json_response("   ")

    def test_unparseable_raises(self):
        with pytest.raises(LLMResponseParseError):
            parse_json_response("I cannot help with that.")


def make_completion(outputs, max_attempts=2, breaker=None):
    provider = ScriptedProvider(outputs)
    completion = StructuredCompletion(
        provider,
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=0.0, multiplier=1.0),
        circuit_breaker=breaker,
        sleep=AsyncMock(),
    )
    return completion, provider


class TestStructuredCompletion:
    @pytest.mark.asyncio
    async def test_returns_parsed_json(self):
        completion, provider = make_completion(['{"ok": true}'])
        assert await completion.complete("system", "user", temperature=0.1) == {"ok": True}
        assert provider.calls[0]["temperature"] == 0.1
        assert "ONLY valid JSON" in provider.calls[0]["system_prompt"]

    @pytest.mark.asyncio
    async def test_malformed_output_is_retried(self):
        completion, provider = make_completion(["not json at all", '{"ok": 1}'])
        assert await completion.complete("s", "u") == {"ok": 1}
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_completion_error(self):
        completion, provider = make_completion(["nope", "still nope"])
        with pytest.raises(CompletionError) as exc_info:
            await completion.complete("s", "u")
        assert exc_info.value.details["attempts"] == 2
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_retries_argument_overrides_policy(self):
        completion, provider = make_completion(["nope", '{"ok": 1}'], max_attempts=3)
        with pytest.raises(CompletionError):
            await completion.complete("s", "u", retries=1)
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_unreachable_backend_is_retried(self):
        completion, provider = make_completion(
            [LLMConnectionError(provider="scripted"), '{"ok": 1}'], max_attempts=3
        )
        assert await completion.complete("s", "u") == {"ok": 1}
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_completion_error_counts_attempts_made(self):
        completion, provider = make_completion(
            [LLMUnavailableError(provider="scripted"), '{"ok": 1}'], max_attempts=3
        )
        with pytest.raises(CompletionError) as exc_info:
            await completion.complete("s", "u")
        assert exc_info.value.attempts == 1
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_model_validation_failure_is_retried(self):
        completion, provider = make_completion(['{"value": "abc"}', '{"value": 3}'])
        answer = await completion.complete_model("s", "u", Answer)
        assert answer == Answer(value=3)
        assert len(provider.calls) == 2


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_threshold_and_recovers(self):
        now = [0.0]
        breaker = CircuitBreaker(
            "scripted",
            CircuitBreakerConfig(failure_threshold=2, recovery_timeout=10.0),
            clock=lambda: now[0],
        )
        failing = AsyncMock(side_effect=RuntimeError("down"))

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(failing)
        assert breaker.state == CircuitState.OPEN

        with pytest.raises(LLMUnavailableError):
            await breaker.call(failing)
        assert failing.await_count == 2

        now[0] = 11.0
        healthy = AsyncMock(return_value="fine")
        assert await breaker.call(healthy) == "fine"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_open_circuit_fails_completion_fast(self):
        breaker = CircuitBreaker("scripted", CircuitBreakerConfig(failure_threshold=1))
        completion, provider = make_completion([RuntimeError("down"), '{"ok": 1}'], max_attempts=3, breaker=breaker)

        with pytest.raises(CompletionError):
            await completion.complete("s", "u")
        assert len(provider.calls) == 1
