"""Retry with exponential backoff and jitter.

Only errors classified as retryable are retried. An error that carries an
explicit ``retry_after`` (rate limits, open circuits) waits exactly that long;
otherwise the delay is ``initial_delay * multiplier ** (attempt - 1)`` plus up
to ``jitter`` of that value, capped at ``max_delay``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

from pydantic import BaseModel, Field

from ..errors import AssistantError, ErrorCode, RetryExhaustedError, classify_exception

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_CODES: FrozenSet[ErrorCode] = frozenset(
    {
        ErrorCode.network_timeout,
        ErrorCode.network_unavailable,
        ErrorCode.api_rate_limit,
        ErrorCode.tool_execution_failed,
    }
)


class RetryPolicy(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    jitter: float = Field(default=0.3, ge=0, description="Maximum jitter as a fraction of the backoff delay")
    retryable_codes: FrozenSet[ErrorCode] = Field(default=DEFAULT_RETRYABLE_CODES)


class RetryHandler:
    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
        on_retry: Optional[Callable[[int, AssistantError, float], None]] = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rand = rand
        self._on_retry = on_retry

    def is_retryable(self, error: AssistantError) -> bool:
        return error.retryable and error.code in self.policy.retryable_codes

    def compute_delay(self, attempt: int, error: Optional[AssistantError] = None) -> float:
        """Delay in seconds before the attempt following ``attempt`` (1-based)."""
        if error is not None and error.retry_after:
            return float(error.retry_after)
        p = self.policy
        exponential = p.initial_delay * (p.backoff_multiplier ** (attempt - 1))
        jitter = self._rand() * p.jitter * exponential
        return min(exponential + jitter, p.max_delay)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` with retries.

        Non-retryable errors propagate immediately (classified into the error
        taxonomy). When every attempt fails, ``RetryExhaustedError`` wraps the
        last error.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                error = classify_exception(exc)
                if not self.is_retryable(error):
                    if error is exc:
                        raise
                    raise error from exc
                if attempt >= self.policy.max_attempts:
                    logger.warning(f"giving up after {attempt} attempts: {error.message}")
                    raise RetryExhaustedError(attempt, error) from exc
                delay = self.compute_delay(attempt, error)
                logger.info(f"attempt {attempt} failed ({error.code.value}); retrying in {delay:.2f}s")
                if self._on_retry is not None:
                    self._on_retry(attempt, error, delay)
                await self._sleep(delay)
