"""
Circuit Breaker for the completion backend.

Stops hammering an LLM backend that keeps failing; calls are blocked while
the circuit is open and a probe call is allowed after the recovery timeout.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from exceptions import LLMUnavailableError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker"""
    failure_threshold: int = 5          # Failures before opening
    recovery_timeout: float = 30.0      # Seconds before a probe call
    success_threshold: int = 1          # Successes to close from half-open


class CircuitBreaker:
    """
    Circuit breaker guarding one provider.

    Usage:
        breaker = CircuitBreaker(name="ollama")
        text = await breaker.call(provider.generate, prompt=...)
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Execute ``func`` with circuit breaker protection.

        Raises:
            LLMUnavailableError: If the circuit is open
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._clock() - self._opened_at >= self.config.recovery_timeout:
                    logger.info(f"Circuit breaker '{self.name}' transitioning to HALF_OPEN")
                    self._state = CircuitState.HALF_OPEN
                    self._success_count = 0
                else:
                    raise LLMUnavailableError(
                        provider=self.name,
                        message=f"Circuit breaker '{self.name}' is open",
                    )

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self._on_failure(e)
            raise
        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.config.success_threshold:
                    logger.info(f"Circuit breaker '{self.name}' transitioning to CLOSED")
                    self._state = CircuitState.CLOSED

    async def _on_failure(self, error: Exception) -> None:
        async with self._lock:
            self._failure_count += 1
            logger.warning(
                f"Circuit breaker '{self.name}' failure {self._failure_count}/"
                f"{self.config.failure_threshold}: {type(error).__name__}"
            )
            if (
                self._state == CircuitState.HALF_OPEN
                or self._failure_count >= self.config.failure_threshold
            ):
                logger.warning(f"Circuit breaker '{self.name}' transitioning to OPEN")
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def reset(self) -> None:
        """Reset circuit breaker (for testing)"""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = 0.0
