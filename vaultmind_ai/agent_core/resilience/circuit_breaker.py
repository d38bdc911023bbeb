from __future__ import annotations

"""Circuit breaker for the generation dependency.

States
------

- ``closed``: calls pass through. Consecutive failures are counted; a success
  resets the count. Reaching ``failure_threshold`` opens the circuit.
- ``open``: calls are rejected immediately with ``CircuitOpenError`` whose
  ``retry_after`` is the remaining cooldown. Once ``reset_timeout`` has elapsed
  the next call moves the circuit to ``half_open``.
- ``half_open``: one trial call at a time is admitted. ``success_threshold``
  consecutive trial successes close the circuit; any trial failure reopens it
  and restarts the cooldown.

One breaker instance exists per external dependency and is shared by every
conversation in the process (see ``get_circuit_breaker``). State transitions
are guarded by a ``threading.Lock``.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from pydantic import BaseModel, Field

from ...core.monitoring import log_circuit_state_change
from ..errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    closed = "closed"
    open = "open"
    half_open = "half_open"


class CircuitBreakerConfig(BaseModel):
    failure_threshold: int = Field(default=5, ge=1, description="Consecutive failures that open the circuit")
    reset_timeout: float = Field(default=60.0, gt=0, description="Seconds the circuit stays open")
    success_threshold: int = Field(default=3, ge=1, description="Trial successes that close the circuit")


@dataclass(frozen=True)
class CircuitSnapshot:
    state: CircuitState
    failures: int
    successes: int
    opened_at: Optional[float]
    last_failure_at: Optional[float]


StateChangeCallback = Callable[[CircuitState, CircuitState], None]


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateChangeCallback] = None,
    ) -> None:
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._on_state_change = on_state_change
        self._lock = threading.Lock()
        self._state = CircuitState.closed
        self._failures = 0
        self._successes = 0
        self._opened_at: Optional[float] = None
        self._last_failure_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            changed = self._refresh()
            state = self._state
        self._notify(changed)
        return state

    def snapshot(self) -> CircuitSnapshot:
        with self._lock:
            changed = self._refresh()
            snap = CircuitSnapshot(
                state=self._state,
                failures=self._failures,
                successes=self._successes,
                opened_at=self._opened_at,
                last_failure_at=self._last_failure_at,
            )
        self._notify(changed)
        return snap

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises ``CircuitOpenError`` without calling ``operation`` while the
        circuit is open (or while a half-open trial is already in flight).
        """
        trial = self._acquire()
        try:
            result = await operation()
        except Exception:
            self._record_failure(trial)
            raise
        except BaseException:
            # cancellation is not a verdict on the dependency
            self._release(trial)
            raise
        self._record_success(trial)
        return result

    def reset(self) -> None:
        with self._lock:
            old = self._state
            self._state = CircuitState.closed
            self._failures = 0
            self._successes = 0
            self._opened_at = None
            self._last_failure_at = None
            self._trial_in_flight = False
        self._notify((old, CircuitState.closed) if old is not CircuitState.closed else None)

    def _refresh(self) -> Optional[tuple[CircuitState, CircuitState]]:
        if self._state is CircuitState.open and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.config.reset_timeout:
                return self._set_state(CircuitState.half_open)
        return None

    def _acquire(self) -> bool:
        with self._lock:
            changed = self._refresh()
            if self._state is CircuitState.open:
                assert self._opened_at is not None
                remaining = max(0.0, self.config.reset_timeout - (self._clock() - self._opened_at))
                error: Optional[CircuitOpenError] = CircuitOpenError(self.name, remaining)
                trial = False
            elif self._state is CircuitState.half_open:
                if self._trial_in_flight:
                    error = CircuitOpenError(self.name, 0.0)
                    trial = False
                else:
                    self._trial_in_flight = True
                    error = None
                    trial = True
            else:
                error = None
                trial = False
        self._notify(changed)
        if error is not None:
            raise error
        return trial

    def _release(self, trial: bool) -> None:
        if trial:
            with self._lock:
                self._trial_in_flight = False

    def _record_success(self, trial: bool) -> None:
        changed = None
        with self._lock:
            if trial:
                self._trial_in_flight = False
            # only the trial call decides a half-open circuit
            if self._state is CircuitState.half_open and trial:
                self._successes += 1
                if self._successes >= self.config.success_threshold:
                    changed = self._set_state(CircuitState.closed)
            elif self._state is CircuitState.closed:
                self._failures = 0
        self._notify(changed)

    def _record_failure(self, trial: bool) -> None:
        changed = None
        with self._lock:
            if trial:
                self._trial_in_flight = False
            self._last_failure_at = self._clock()
            if self._state is CircuitState.half_open and trial:
                changed = self._set_state(CircuitState.open)
            elif self._state is CircuitState.closed:
                self._failures += 1
                if self._failures >= self.config.failure_threshold:
                    changed = self._set_state(CircuitState.open)
        self._notify(changed)

    def _set_state(self, new: CircuitState) -> Optional[tuple[CircuitState, CircuitState]]:
        old = self._state
        if old is new:
            return None
        self._state = new
        if new is CircuitState.open:
            self._opened_at = self._clock()
            self._successes = 0
        elif new is CircuitState.half_open:
            self._successes = 0
            self._trial_in_flight = False
        else:
            self._failures = 0
            self._successes = 0
            self._opened_at = None
        return old, new

    def _notify(self, changed: Optional[tuple[CircuitState, CircuitState]]) -> None:
        if changed is None:
            return
        old, new = changed
        logger.warning(f"circuit '{self.name}' {old.value} -> {new.value}")
        log_circuit_state_change(self.name, old.value, new.value)
        if self._on_state_change is not None:
            self._on_state_change(old, new)


_registry: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
    """Return the process-wide breaker for ``name``, creating it on first use.

    ``config`` only applies when the breaker is created.
    """
    with _registry_lock:
        breaker = _registry.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, config)
            _registry[name] = breaker
        return breaker


def reset_circuit_breakers() -> None:
    with _registry_lock:
        _registry.clear()
