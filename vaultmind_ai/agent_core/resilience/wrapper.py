"""Composition of retry and circuit breaker around one external dependency."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from .circuit_breaker import CircuitBreaker
from .retry import RetryHandler

T = TypeVar("T")


@dataclass(frozen=True)
class ResilientCaller:
    """Retries wrap the breaker, so an open circuit waits out its cooldown
    (``CircuitOpenError.retry_after``) before the next attempt."""

    breaker: CircuitBreaker
    retry: RetryHandler = field(default_factory=RetryHandler)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.retry.execute(lambda: self.breaker.execute(operation))
