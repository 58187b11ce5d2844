"""
Retry Policy

Explicit retry-with-backoff policy shared by the structured completion
capability and the PDF fetcher.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy.

    Delay before retry ``n`` (1-based) is ``base_delay * multiplier ** (n - 1)``,
    capped at ``max_delay``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.multiplier < 1:
            raise ValueError("base_delay must be >= 0 and multiplier >= 1")

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before the given retry (1 = first retry)."""
        delay = self.base_delay * (self.multiplier ** max(retry_number - 1, 0))
        return min(delay, self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        give_up_on: Tuple[Type[BaseException], ...] = (),
        is_retryable: Optional[Callable[[BaseException], bool]] = None,
        operation_name: str = "operation",
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or attempts are exhausted.

        Exceptions outside ``retry_on``, inside ``give_up_on``, or rejected by
        ``is_retryable`` propagate immediately. After the last attempt the
        final exception is re-raised.
        """
        sleep = sleep or asyncio.sleep

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except give_up_on:
                raise
            except retry_on as e:
                error_type = type(e).__name__
                if is_retryable is not None and not is_retryable(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        f"{operation_name} failed after {self.max_attempts} attempt(s): {error_type}: {e}"
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{operation_name} failed ({error_type}), "
                    f"retry {attempt}/{self.max_attempts - 1} in {delay}s"
                )
                await sleep(delay)

        # Unreachable: the loop either returns or raises.
        raise RuntimeError(f"{operation_name}: retry loop exited without result")
