"""Resilience primitives for calls to the generation dependency."""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitSnapshot,
    CircuitState,
    get_circuit_breaker,
    reset_circuit_breakers,
)
from .retry import RetryHandler, RetryPolicy
from .wrapper import ResilientCaller

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitSnapshot",
    "CircuitState",
    "ResilientCaller",
    "RetryHandler",
    "RetryPolicy",
    "get_circuit_breaker",
    "reset_circuit_breakers",
]
