"""
Structured Completion

Wraps an LLM provider so callers get parsed JSON (or a validated pydantic
model) back, or a ``CompletionError`` once the retry policy is exhausted.

Model output is normalized before parsing: code fences and commentary are
stripped, trailing commas removed, and control characters replaced.
"""

import json
import logging
import re
from dataclasses import replace
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from exceptions import CompletionError, LLMResponseParseError, LLMUnavailableError
from retry_policy import RetryPolicy

from .base import BaseLLMProvider
from .circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_ONLY_INSTRUCTION = (
    "\n\nCRITICAL: Respond with ONLY valid JSON. No explanations, no markdown "
    "code fences, no text before or after the JSON."
)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*\n?([\s\S]*?)\n?```")
_TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")
_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x1f\x7f]")
_NESTED_OBJECT_PATTERN = re.compile(r"\{(?:[^{}]|\{(?:[^{}]|\{[^{}]*\})*\})*\}")


def _clean_json_text(text: str) -> str:
    """Remove trailing commas and replace control characters with spaces."""
    text = _TRAILING_COMMA_PATTERN.sub(r"\1", text)
    return _CONTROL_CHAR_PATTERN.sub(" ", text)


def _candidates(text: str) -> list[str]:
    """Substrings of a model response that may hold the JSON payload."""
    candidates = [text]

    for match in _FENCE_PATTERN.finditer(text):
        candidates.append(match.group(1).strip())

    obj_start, obj_end = text.find("{"), text.rfind("}")
    if obj_start != -1 and obj_end > obj_start:
        candidates.append(text[obj_start:obj_end + 1])

    arr_start, arr_end = text.find("["), text.rfind("]")
    if arr_start != -1 and arr_end > arr_start:
        candidates.append(text[arr_start:arr_end + 1])

    return candidates


def parse_json_response(text: Optional[str], provider: str = "unknown") -> Any:
    """
    Parse JSON out of an LLM response.

    Tries, in order: the raw text, fenced code blocks, the outermost ``{...}``
    span, the outermost ``[...]`` span (each as-is and after cleaning), and
    finally the largest balanced object that parses.

    Raises:
        LLMResponseParseError: nothing parseable was found
    """
    if not text or not text.strip():
        raise LLMResponseParseError(provider=provider, raw_response=text, message="Empty LLM response")

    stripped = text.strip()
    for candidate in _candidates(stripped):
        for attempt in (candidate, _clean_json_text(candidate)):
            try:
                return json.loads(attempt)
            except json.JSONDecodeError:
                continue

    objects = sorted(_NESTED_OBJECT_PATTERN.findall(stripped), key=len, reverse=True)
    for obj in objects:
        try:
            return json.loads(_clean_json_text(obj))
        except json.JSONDecodeError:
            continue

    raise LLMResponseParseError(provider=provider, raw_response=text)


class StructuredCompletion:
    """
    The structured completion capability used by the pipeline stages.

    ``complete`` returns parsed JSON. ``complete_model`` additionally
    validates against a pydantic model; a validation failure counts as a
    malformed response and is retried like a parse failure.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        retry_policy: Optional[RetryPolicy] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        max_tokens: int = 4096,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=2, base_delay=1.0, multiplier=1.0)
        self.circuit_breaker = circuit_breaker
        self.max_tokens = max_tokens
        self._sleep = sleep

    @property
    def provider_name(self) -> str:
        return self.provider.name

    async def _generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        kwargs = dict(
            prompt=user_prompt,
            system_prompt=system_prompt + JSON_ONLY_INSTRUCTION,
            max_tokens=self.max_tokens,
            temperature=temperature,
        )
        if self.circuit_breaker is not None:
            return await self.circuit_breaker.call(self.provider.generate, **kwargs)
        return await self.provider.generate(**kwargs)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        retries: Optional[int] = None,
        decoder: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """
        Run a completion and parse its JSON.

        Args:
            retries: maximum number of attempts (overrides the policy)
            decoder: applied to the parsed JSON inside each attempt

        Raises:
            CompletionError: every attempt failed
        """
        policy = self.retry_policy
        if retries is not None:
            policy = replace(policy, max_attempts=max(1, retries))

        attempts_made = 0

        async def attempt() -> Any:
            nonlocal attempts_made
            attempts_made += 1
            text = await self._generate(system_prompt, user_prompt, temperature)
            data = parse_json_response(text, provider=self.provider_name)
            return decoder(data) if decoder else data

        # An open circuit fails fast; unreachable backends are retried.
        try:
            return await policy.run(
                attempt,
                give_up_on=(LLMUnavailableError,),
                operation_name=f"{self.provider_name} structured completion",
                sleep=self._sleep,
            )
        except Exception as e:
            raise CompletionError(
                provider=self.provider_name,
                attempts=attempts_made,
                reason=f"{type(e).__name__}: {e}",
            ) from e

    async def complete_model(
        self,
        system_prompt: str,
        user_prompt: str,
        model_cls: Type[ModelT],
        temperature: float = 0.3,
        retries: Optional[int] = None,
    ) -> ModelT:
        """Run a completion and validate the JSON into ``model_cls``."""

        def decode(data: Any) -> ModelT:
            try:
                return model_cls.model_validate(data)
            except ValidationError as e:
                logger.warning(f"{model_cls.__name__} validation failed: {e.error_count()} error(s)")
                raise

        return await self.complete(
            system_prompt,
            user_prompt,
            temperature=temperature,
            retries=retries,
            decoder=decode,
        )
