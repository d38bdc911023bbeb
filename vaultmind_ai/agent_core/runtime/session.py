from __future__ import annotations

"""Streaming session.

A ``StreamingSession`` is one logical assistant response. It survives across
suspensions: each call to the generation capability (the initial call and
every resumption) is a *segment*, and all segments append to the same text
buffer.

Lifecycle
---------

::

    active --interrupted + pending requests--> suspended --resume--> active
    active --completed (no pending requests)--> completed
    active --failure / invalid state--> failed
    active | suspended --cancel--> cancelled

- The events of a segment are consumed once; ``events()`` hands out the
  current segment's iterator a single time.
- Opening a segment (up to and including its first raw event) goes through
  the resilience wrapper. After the first event has been delivered a failure
  fails the session and keeps the partial text; it is never retried, so no
  output is delivered twice.
- An interruption with no pending requests is an invalid state: the session
  fails with ``StreamStateInvalidError``.
- A segment that completes while requests are pending suspends the session
  instead of completing it.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import uuid4

from ...core.monitoring import log_error, log_session_finished, log_session_started
from ..errors import AssistantError, StreamStateInvalidError, classify_exception
from ..generation.base import GenerationCapability
from ..resilience.wrapper import ResilientCaller
from ..schemas.config import GenerationConfig
from ..schemas.domain import ActionInvocation, ActionResultPayload, ChatMessage, InvocationStatus, ResumeRequest, SessionState
from ..schemas.events import (
    ActionRequested,
    CanonicalEvent,
    Completed,
    Failed,
    Interrupted,
    SessionEvent,
    Suspended,
    TextDelta,
)
from .normalization import StreamNormalizer

logger = logging.getLogger(__name__)

_EXHAUSTED = object()


async def _no_events() -> AsyncIterator[SessionEvent]:
    return
    yield  # pragma: no cover


def _describe(name: str, arguments: Dict[str, Any]) -> str:
    shown = ", ".join(f"{k}={v!r}" for k, v in list(arguments.items())[:3])
    if len(shown) > 160:
        shown = shown[:157] + "..."
    return f"{name}({shown})"


def failed_event(error: AssistantError) -> Failed:
    return Failed(
        code=error.code.value,
        message=error.message,
        user_message=error.user_message,
        retryable=error.retryable,
    )


class StreamingSession:
    def __init__(
        self,
        *,
        conversation_id: str,
        capability: GenerationCapability,
        config: GenerationConfig,
        conversation: List[ChatMessage],
        caller: Optional[ResilientCaller] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or str(uuid4())
        self.conversation_id = conversation_id
        self.state = SessionState.active
        self.resumption_token: Optional[str] = None
        self.error: Optional[AssistantError] = None
        self.segments: List[str] = []

        self._capability = capability
        self._config = config
        self._conversation = list(conversation)
        self._caller = caller
        self._normalizer = StreamNormalizer()
        self._buffer: List[str] = []
        self._invocations: Dict[str, ActionInvocation] = {}
        self._batch: List[str] = []
        self._iterator: Optional[AsyncIterator[Any]] = None
        self._next_task: Optional[asyncio.Future] = None
        self._segment: Optional[AsyncIterator[SessionEvent]] = self._run_segment(None)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    @property
    def invocations(self) -> List[ActionInvocation]:
        return list(self._invocations.values())

    def get_invocation(self, invocation_id: str) -> Optional[ActionInvocation]:
        return self._invocations.get(invocation_id)

    def batch(self) -> List[ActionInvocation]:
        """Invocations requested in the current (or last) segment, in request order."""
        return [self._invocations[i] for i in self._batch]

    def pending(self) -> List[ActionInvocation]:
        return [inv for inv in self.batch() if inv.status is InvocationStatus.pending]

    @property
    def is_resting(self) -> bool:
        return self.state is not SessionState.active

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    def events(self) -> AsyncIterator[SessionEvent]:
        """The current segment's events. A segment can be consumed once."""
        segment, self._segment = self._segment, None
        return segment if segment is not None else _no_events()

    def ensure_resumable(self) -> str:
        """Return the resumption token, or raise ``StreamStateInvalidError``."""
        if self.state is not SessionState.suspended:
            raise StreamStateInvalidError(
                f"session {self.id} cannot be resumed from state {self.state.value}",
                context={"session_id": self.id, "state": self.state.value},
            )
        if not self.resumption_token:
            raise StreamStateInvalidError(
                f"session {self.id} has no resumption token", context={"session_id": self.id}
            )
        return self.resumption_token

    def resume(self, results: List[ActionResultPayload]) -> AsyncIterator[SessionEvent]:
        """Start the next segment, handing ``results`` back to the generation capability."""
        token = self.ensure_resumable()
        self.state = SessionState.active
        self._batch = []
        self._segment = self._run_segment(ResumeRequest(token=token, results=list(results)))
        return self.events()

    async def cancel(self, discard: bool = False) -> None:
        """Cancel the session.

        While active, the underlying stream is aborted. While suspended, pending
        invocations stay pending. The text buffer is kept unless ``discard``.
        """
        if self.state in (SessionState.completed, SessionState.failed, SessionState.cancelled):
            return
        previous = self.state
        self.state = SessionState.cancelled
        if discard:
            self._buffer.clear()
            self.segments = ["" for _ in self.segments]
        if self._next_task is not None and not self._next_task.done():
            self._next_task.cancel()
        elif self._iterator is not None:
            await self._close_iterator()
        if self._segment is not None:
            self._segment = None
        logger.info(f"session {self.id} cancelled (was {previous.value}, discard={discard})")
        log_session_finished(self.id, self.state.value, len(self.pending()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _open(self, resume: Optional[ResumeRequest]) -> tuple[AsyncIterator[Any], Any]:
        async def attempt() -> tuple[AsyncIterator[Any], Any]:
            iterator = self._capability.stream(self._conversation, self._config, resume=resume).__aiter__()
            try:
                first = await iterator.__anext__()
            except StopAsyncIteration:
                return iterator, _EXHAUSTED
            except BaseException:
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    await aclose()
                raise
            return iterator, first

        if self._caller is None:
            return await attempt()
        return await self._caller.call(attempt)

    async def _next(self) -> Any:
        assert self._iterator is not None
        self._next_task = asyncio.ensure_future(self._iterator.__anext__())
        try:
            return await self._next_task
        except StopAsyncIteration:
            return _EXHAUSTED
        except asyncio.CancelledError:
            if self.state is SessionState.cancelled:
                return _EXHAUSTED
            raise
        finally:
            self._next_task = None

    async def _close_iterator(self, iterator: Optional[AsyncIterator[Any]] = None) -> None:
        if iterator is None:
            iterator = self._iterator
        if iterator is None:
            return
        if self._iterator is iterator:
            self._iterator = None
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as exc:
            logger.debug(f"session {self.id}: error closing stream: {exc}")

    async def _run_segment(self, resume: Optional[ResumeRequest]) -> AsyncIterator[SessionEvent]:
        self.segments.append("")
        log_session_started(self.id, self.conversation_id, resumed=resume is not None)
        if self.state is SessionState.cancelled:
            return
        try:
            iterator, raw = await self._open(resume)
            self._iterator = iterator
        except Exception as exc:
            if self.state is SessionState.active:
                yield self._fail(classify_exception(exc))
            return

        try:
            while raw is not _EXHAUSTED and self.state is SessionState.active:
                for event in self._normalizer.normalize(raw):
                    for out in self._apply(event):
                        yield out
                    if self.state is not SessionState.active:
                        break
                if self.state is not SessionState.active:
                    break
                raw = await self._next()
        except Exception as exc:
            if self.state is SessionState.active:
                yield self._fail(classify_exception(exc))
        finally:
            await self._close_iterator(iterator)

        if self.state is SessionState.active:
            # stream ended without a terminal event
            if self.pending():
                yield self._suspend(self.resumption_token)
            else:
                yield self._complete()

    def _apply(self, event: CanonicalEvent) -> List[SessionEvent]:
        if isinstance(event, TextDelta):
            self._append(event.text)
            return [event]
        if isinstance(event, ActionRequested):
            if event.invocation_id in self._invocations:
                return []
            inv = ActionInvocation(
                id=event.invocation_id,
                name=event.name,
                arguments=event.arguments,
                session_id=self.id,
                description=_describe(event.name, event.arguments),
            )
            self._invocations[inv.id] = inv
            self._batch.append(inv.id)
            return [event]
        if isinstance(event, Interrupted):
            if not self.pending():
                return [
                    self._fail(
                        StreamStateInvalidError(
                            f"session {self.id}: interruption without pending requests",
                            context={"session_id": self.id},
                        )
                    )
                ]
            return [self._suspend(event.resumption_token)]
        if isinstance(event, Completed):
            if event.final_text and not self.segments[-1]:
                self._append(event.final_text)
                delta: List[SessionEvent] = [TextDelta(text=event.final_text)]
            else:
                delta = []
            if self.pending():
                return [*delta, self._suspend(event.resumption_token or self.resumption_token)]
            return [*delta, self._complete()]
        if isinstance(event, Failed):
            error = AssistantError(event.message, user_message=event.user_message, retryable=event.retryable)
            return [self._fail(error)]
        return []

    def _append(self, text: str) -> None:
        self._buffer.append(text)
        self.segments[-1] += text

    def _suspend(self, token: Optional[str]) -> Suspended:
        self.state = SessionState.suspended
        self.resumption_token = token
        pending = self.pending()
        logger.info(f"session {self.id} suspended with {len(pending)} pending invocation(s)")
        log_session_finished(self.id, self.state.value, len(pending))
        return Suspended(session_id=self.id, pending=pending)

    def _complete(self) -> Completed:
        self.state = SessionState.completed
        self.resumption_token = None
        log_session_finished(self.id, self.state.value)
        return Completed(final_text=self.text)

    def _fail(self, error: AssistantError) -> Failed:
        self.state = SessionState.failed
        self.error = error
        logger.warning(f"session {self.id} failed: {error.code.value}: {error.message}")
        log_error(error.code.value, error.message, {"session_id": self.id})
        log_session_finished(self.id, self.state.value)
        return failed_event(error)
