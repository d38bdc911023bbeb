from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from vaultmind_ai.agent_core.errors import ErrorCode, StreamStateInvalidError
from vaultmind_ai.agent_core.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    ResilientCaller,
    RetryHandler,
    RetryPolicy,
)
from vaultmind_ai.agent_core.runtime import StreamingSession
from vaultmind_ai.agent_core.schemas.config import GenerationConfig
from vaultmind_ai.agent_core.schemas.domain import (
    ActionResultPayload,
    ChatMessage,
    InvocationStatus,
    MessageRole,
    SessionState,
)
from vaultmind_ai.agent_core.schemas.events import ActionRequested, Completed, Failed, Suspended, TextDelta


def _session(generation, caller=None) -> StreamingSession:
    return StreamingSession(
        conversation_id="c1",
        capability=generation,
        config=GenerationConfig(),
        conversation=[ChatMessage(conversation_id="c1", role=MessageRole.user, content="hi")],
        caller=caller,
    )


async def _collect(events) -> List:
    return [event async for event in events]


async def _no_sleep(_: float) -> None:
    return None


def _caller() -> ResilientCaller:
    return ResilientCaller(
        breaker=CircuitBreaker("session-test", CircuitBreakerConfig()),
        retry=RetryHandler(RetryPolicy(max_attempts=3), sleep=_no_sleep, rand=lambda: 0.0),
    )


@pytest.mark.asyncio
async def test_text_then_completion(scripted) -> None:
    gen = scripted([scripted.text("Hello "), scripted.text("world"), scripted.completed()])
    session = _session(gen)
    events = await _collect(session.events())
    assert events == [TextDelta(text="Hello "), TextDelta(text="world"), Completed(final_text="Hello world")]
    assert session.state is SessionState.completed
    assert session.text == "Hello world"
    assert gen.calls[0]["resume"] is None


@pytest.mark.asyncio
async def test_final_text_used_when_nothing_streamed(scripted) -> None:
    session = _session(scripted([scripted.completed("All done")]))
    events = await _collect(session.events())
    assert events[0] == TextDelta(text="All done")
    assert session.text == "All done"


@pytest.mark.asyncio
async def test_stream_ending_without_terminal_event_completes(scripted) -> None:
    session = _session(scripted([scripted.text("partial")]))
    events = await _collect(session.events())
    assert isinstance(events[-1], Completed)
    assert session.state is SessionState.completed


@pytest.mark.asyncio
async def test_events_can_only_be_consumed_once(scripted) -> None:
    session = _session(scripted([scripted.text("x")]))
    await _collect(session.events())
    assert await _collect(session.events()) == []


@pytest.mark.asyncio
async def test_interruption_suspends_with_pending_batch(scripted) -> None:
    gen = scripted(
        [
            scripted.text("Let me do that. "),
            scripted.interrupted(
                scripted.call("c1", "create_note", {"path": "a.md", "content": "x"}),
                scripted.call(None, "read_note", '{"path": "b.md"}'),
            ),
        ]
    )
    session = _session(gen)
    events = await _collect(session.events())

    assert [type(e) for e in events] == [TextDelta, ActionRequested, ActionRequested, Suspended]
    assert session.state is SessionState.suspended
    assert session.resumption_token == "tok-1"
    assert [inv.id for inv in events[-1].pending] == ["c1", "read_note-1"]
    assert session.batch()[1].arguments == {"path": "b.md"}
    assert session.batch()[0].description.startswith("create_note(path='a.md'")


@pytest.mark.asyncio
async def test_resume_appends_to_same_session(scripted) -> None:
    gen = scripted(
        [scripted.text("Working. "), scripted.interrupted(scripted.call("c1", "create_note", {"path": "a.md"}))],
        [scripted.text("Done."), scripted.completed()],
    )
    session = _session(gen)
    await _collect(session.events())
    inv = session.get_invocation("c1")
    inv.transition(InvocationStatus.approved)

    payload = ActionResultPayload(invocation_id="c1", name="create_note", ok=True)
    events = await _collect(session.resume([payload]))

    assert isinstance(events[-1], Completed)
    assert events[-1].final_text == "Working. Done."
    assert session.segments == ["Working. ", "Done."]
    resume = gen.calls[1]["resume"]
    assert resume.token == "tok-1"
    assert resume.results == [payload]
    assert session.batch() == []


@pytest.mark.asyncio
async def test_resume_requires_suspended_state(scripted) -> None:
    session = _session(scripted([scripted.completed("x")]))
    await _collect(session.events())
    with pytest.raises(StreamStateInvalidError):
        session.resume([])


@pytest.mark.asyncio
async def test_completion_with_pending_requests_suspends_without_token(scripted) -> None:
    gen = scripted([{"type": "tool_call", "id": "c1", "name": "create_note", "arguments": "{}"}, scripted.completed()])
    session = _session(gen)
    events = await _collect(session.events())
    assert isinstance(events[-1], Suspended)
    assert session.resumption_token is None
    with pytest.raises(StreamStateInvalidError):
        session.ensure_resumable()


@pytest.mark.asyncio
async def test_interruption_without_requests_fails(scripted) -> None:
    session = _session(scripted([scripted.text("a"), scripted.interrupted()]))
    events = await _collect(session.events())
    assert isinstance(events[-1], Failed)
    assert events[-1].code == ErrorCode.stream_state_invalid.value
    assert session.state is SessionState.failed


@pytest.mark.asyncio
async def test_duplicate_requests_are_collapsed(scripted) -> None:
    call = scripted.call("c1", "create_note", {})
    session = _session(scripted([{"type": "tool_call", **call}, scripted.interrupted(call)]))
    events = await _collect(session.events())
    assert [type(e) for e in events] == [ActionRequested, Suspended]
    assert len(session.batch()) == 1


@pytest.mark.asyncio
async def test_mid_stream_failure_keeps_partial_text(scripted) -> None:
    session = _session(scripted([scripted.text("half"), httpx.ReadTimeout("slow")]), caller=_caller())
    events = await _collect(session.events())
    assert events[0] == TextDelta(text="half")
    assert isinstance(events[-1], Failed)
    assert events[-1].code == ErrorCode.network_timeout.value
    assert session.text == "half"
    assert session.error is not None


@pytest.mark.asyncio
async def test_open_failure_is_retried_by_caller(scripted) -> None:
    gen = scripted(httpx.ConnectError("refused"), [scripted.text("ok"), scripted.completed()])
    session = _session(gen, caller=_caller())
    events = await _collect(session.events())
    assert isinstance(events[-1], Completed)
    assert len(gen.calls) == 2


@pytest.mark.asyncio
async def test_open_failure_without_caller_fails(scripted) -> None:
    session = _session(scripted(httpx.ConnectError("refused")))
    [event] = await _collect(session.events())
    assert isinstance(event, Failed)
    assert event.code == ErrorCode.network_unavailable.value
    assert event.retryable is True


@pytest.mark.asyncio
async def test_failed_raw_event_fails_session(scripted) -> None:
    session = _session(scripted([{"type": "failed", "message": "provider says no"}]))
    [event] = await _collect(session.events())
    assert event.message == "provider says no"
    assert session.state is SessionState.failed


@pytest.mark.asyncio
async def test_cancel_while_streaming_stops_the_stream(scripted) -> None:
    gate = asyncio.Event()
    session = _session(scripted([scripted.text("before"), gate, scripted.text("after")]))
    received: List = []

    async def consume() -> None:
        async for event in session.events():
            received.append(event)

    task = asyncio.create_task(consume())
    for _ in range(50):
        if received:
            break
        await asyncio.sleep(0)
    await session.cancel()
    await asyncio.wait_for(task, timeout=1)

    assert received == [TextDelta(text="before")]
    assert session.state is SessionState.cancelled
    assert session.text == "before"


@pytest.mark.asyncio
async def test_cancel_while_suspended_keeps_pending(scripted) -> None:
    session = _session(scripted([scripted.interrupted(scripted.call("c1", "delete_file", {"path": "a.md"}))]))
    await _collect(session.events())
    await session.cancel(discard=True)
    assert session.state is SessionState.cancelled
    assert session.pending()[0].status is InvocationStatus.pending
    assert session.text == ""
    with pytest.raises(StreamStateInvalidError):
        session.ensure_resumable()


@pytest.mark.asyncio
async def test_cancel_before_consuming_yields_nothing(scripted) -> None:
    gen = scripted([scripted.text("never")])
    session = _session(gen)
    await session.cancel()
    assert await _collect(session.events()) == []
    assert gen.calls == []


@pytest.mark.asyncio
async def test_cancel_after_completion_is_a_noop(scripted) -> None:
    session = _session(scripted([scripted.completed("x")]))
    await _collect(session.events())
    await session.cancel(discard=True)
    assert session.state is SessionState.completed
    assert session.text == "x"
