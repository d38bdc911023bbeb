from __future__ import annotations

import asyncio
from typing import List, Tuple

import pytest

from vaultmind_ai.agent_core.errors import CircuitOpenError, NetworkTransientError
from vaultmind_ai.agent_core.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    get_circuit_breaker,
    reset_circuit_breakers,
)


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def _ok() -> str:
    return "ok"


async def _boom() -> str:
    raise NetworkTransientError("down")


def _breaker(clock: _Clock, **cfg) -> Tuple[CircuitBreaker, List[Tuple[CircuitState, CircuitState]]]:
    changes: List[Tuple[CircuitState, CircuitState]] = []
    breaker = CircuitBreaker(
        "test",
        CircuitBreakerConfig(**{"failure_threshold": 2, "reset_timeout": 10.0, "success_threshold": 2, **cfg}),
        clock=clock,
        on_state_change=lambda old, new: changes.append((old, new)),
    )
    return breaker, changes


async def _trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(NetworkTransientError):
            await breaker.execute(_boom)


def test_default_config() -> None:
    cfg = CircuitBreakerConfig()
    assert (cfg.failure_threshold, cfg.reset_timeout, cfg.success_threshold) == (5, 60.0, 3)


@pytest.mark.asyncio
async def test_opens_after_consecutive_failures() -> None:
    clock = _Clock()
    breaker, changes = _breaker(clock)
    await _trip(breaker, 2)
    assert breaker.state is CircuitState.open
    assert changes == [(CircuitState.closed, CircuitState.open)]


@pytest.mark.asyncio
async def test_success_resets_failure_count_when_closed() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    await _trip(breaker, 1)
    assert await breaker.execute(_ok) == "ok"
    await _trip(breaker, 1)
    assert breaker.state is CircuitState.closed


@pytest.mark.asyncio
async def test_open_circuit_rejects_without_calling() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    await _trip(breaker, 2)
    clock.now += 4.0
    called = False

    async def op() -> str:
        nonlocal called
        called = True
        return "x"

    with pytest.raises(CircuitOpenError) as info:
        await breaker.execute(op)
    assert called is False
    assert info.value.retry_after == pytest.approx(6.0)


@pytest.mark.asyncio
async def test_half_open_after_timeout_and_closes_after_successes() -> None:
    clock = _Clock()
    breaker, changes = _breaker(clock)
    await _trip(breaker, 2)
    clock.now += 10.0
    assert breaker.state is CircuitState.half_open

    await breaker.execute(_ok)
    assert breaker.state is CircuitState.half_open
    await breaker.execute(_ok)
    assert breaker.state is CircuitState.closed
    assert changes == [
        (CircuitState.closed, CircuitState.open),
        (CircuitState.open, CircuitState.half_open),
        (CircuitState.half_open, CircuitState.closed),
    ]


@pytest.mark.asyncio
async def test_half_open_failure_reopens() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    await _trip(breaker, 2)
    clock.now += 10.0
    await _trip(breaker, 1)
    assert breaker.state is CircuitState.open
    assert breaker.snapshot().opened_at == clock.now


@pytest.mark.asyncio
async def test_half_open_allows_single_trial_at_a_time() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    await _trip(breaker, 2)
    clock.now += 10.0

    gate = asyncio.Event()

    async def slow() -> str:
        await gate.wait()
        return "slow"

    trial = asyncio.create_task(breaker.execute(slow))
    await asyncio.sleep(0)
    with pytest.raises(CircuitOpenError) as info:
        await breaker.execute(_ok)
    assert info.value.retry_after == 0.0
    gate.set()
    assert await trial == "slow"


@pytest.mark.asyncio
async def test_cancelled_trial_is_not_counted() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    await _trip(breaker, 2)
    clock.now += 10.0

    async def hang() -> str:
        await asyncio.Event().wait()
        return "never"

    task = asyncio.create_task(breaker.execute(hang))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert breaker.state is CircuitState.half_open
    assert await breaker.execute(_ok) == "ok"


@pytest.mark.asyncio
async def test_reset_closes() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    await _trip(breaker, 2)
    breaker.reset()
    assert breaker.state is CircuitState.closed
    assert breaker.snapshot().failures == 0


def test_registry_shares_breakers_by_name() -> None:
    first = get_circuit_breaker("shared", CircuitBreakerConfig(failure_threshold=1))
    second = get_circuit_breaker("shared", CircuitBreakerConfig(failure_threshold=9))
    assert first is second
    assert first.config.failure_threshold == 1
    reset_circuit_breakers()
    assert get_circuit_breaker("shared") is not first


@pytest.mark.asyncio
async def test_snapshot_tracks_last_failure_time() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock)
    assert breaker.snapshot().last_failure_at is None
    await _trip(breaker, 1)
    assert breaker.snapshot().last_failure_at == clock.now
    breaker.reset()
    assert breaker.snapshot().last_failure_at is None


@pytest.mark.asyncio
async def test_calls_admitted_while_closed_do_not_decide_half_open() -> None:
    clock = _Clock()
    breaker, _ = _breaker(clock, success_threshold=1)
    release_ok = asyncio.Event()
    release_fail = asyncio.Event()

    async def slow_ok() -> str:
        await release_ok.wait()
        return "late"

    async def slow_fail() -> str:
        await release_fail.wait()
        raise NetworkTransientError("late failure")

    stale_ok = asyncio.create_task(breaker.execute(slow_ok))
    stale_fail = asyncio.create_task(breaker.execute(slow_fail))
    await asyncio.sleep(0)
    await _trip(breaker, 2)
    clock.now += 10.0
    assert breaker.state is CircuitState.half_open

    release_ok.set()
    assert await stale_ok == "late"
    assert breaker.state is CircuitState.half_open
    assert breaker.snapshot().successes == 0

    release_fail.set()
    with pytest.raises(NetworkTransientError):
        await stale_fail
    assert breaker.state is CircuitState.half_open

    assert await breaker.execute(_ok) == "ok"
    assert breaker.state is CircuitState.closed
