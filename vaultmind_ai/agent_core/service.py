from __future__ import annotations

"""High-level conversation service.

``AssistantService`` is the application-facing API of the orchestration core.
It owns one ``ConversationContext`` per conversation and wires the streaming
session, approval broker, coordinator and ledger together.

Workflow
--------

- ``start_turn`` records the user message and opens a streaming session.
- ``stream`` yields the session's events. When the session suspends, an
  ``ApprovalBroker`` is created for the batch. If no invocation in the batch
  needs a human, the batch continues immediately; otherwise ``Suspended`` is
  yielded with the invocations awaiting a decision.
- ``submit_decisions`` resolves the batch (fail-closed), executes the approved
  invocations through the coordinator and streams the resumed generation.
- ``cancel`` stops the session; ``undo``/``redo`` walk the ledger.

Each assistant segment is persisted as one transcript message whose status
follows the session (``streaming`` while generating, then ``complete``,
``error`` or ``cancelled``).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Mapping, Optional

from .actions.base import ActionContext
from .actions.registry import ActionRegistry
from .actions.store import DocumentStore
from .approval.broker import ApprovalBroker
from .errors import AssistantError, SessionBusyError, StreamStateInvalidError
from .generation.base import GenerationCapability
from .ledger.ledger import LedgerEntry, ReversibleLedger
from .repos.interfaces import TranscriptRepository
from .resilience.wrapper import ResilientCaller
from .runtime.context import ConversationContext
from .runtime.coordinator import ResumableCoordinator, session_failure
from .runtime.session import StreamingSession
from .schemas.config import GenerationConfig
from .schemas.domain import (
    ActionInvocation,
    ApprovalOutcome,
    ChatMessage,
    MessageRole,
    MessageStatus,
    SessionState,
)
from .schemas.events import SessionEvent, Suspended, TextDelta

logger = logging.getLogger(__name__)

_MESSAGE_STATUS = {
    SessionState.active: MessageStatus.streaming,
    SessionState.suspended: MessageStatus.complete,
    SessionState.completed: MessageStatus.complete,
    SessionState.failed: MessageStatus.error,
    SessionState.cancelled: MessageStatus.cancelled,
}


@dataclass(frozen=True)
class AssistantServiceDeps:
    """Dependency bundle for ``AssistantService``."""

    registry: ActionRegistry
    generation: GenerationCapability
    store: DocumentStore
    transcripts: TranscriptRepository
    coordinator: ResumableCoordinator
    caller: Optional[ResilientCaller] = None
    generation_config: GenerationConfig = field(default_factory=GenerationConfig)
    ledger_capacity: int = 50
    approval_timeout: Optional[float] = None


class AssistantService:
    """Drive conversations: streaming, approvals, execution and undo/redo."""

    def __init__(self, *, deps: AssistantServiceDeps) -> None:
        self._deps = deps
        self._contexts: Dict[str, ConversationContext] = {}

    @property
    def registry(self) -> ActionRegistry:
        return self._deps.registry

    async def context(self, conversation_id: str) -> ConversationContext:
        """Return the conversation's context, loading its transcript on first use."""
        ctx = self._contexts.get(conversation_id)
        if ctx is None:
            ctx = ConversationContext(
                conversation_id=conversation_id,
                ledger=ReversibleLedger(self._deps.ledger_capacity),
                transcript=await self._deps.transcripts.list(conversation_id),
            )
            ctx = self._contexts.setdefault(conversation_id, ctx)
        return ctx

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def start_turn(self, conversation_id: str, text: str) -> StreamingSession:
        """Record a user message and open a streaming session for it.

        Raises ``SessionBusyError`` while another session of the conversation
        is still streaming. A suspended session is cancelled (its pending
        invocations stay undecided) in favour of the new turn.
        """
        ctx = await self.context(conversation_id)
        async with ctx.lock:
            if ctx.is_streaming:
                raise SessionBusyError(
                    f"conversation {conversation_id} already has an active session",
                    context={"conversation_id": conversation_id},
                )
            if ctx.is_suspended:
                assert ctx.session is not None
                logger.info(f"new turn supersedes suspended session {ctx.session.id}")
                await ctx.session.cancel()
                ctx.broker = None

            user_message = ChatMessage(conversation_id=conversation_id, role=MessageRole.user, content=text)
            await self._save(ctx, user_message)

            config = self._deps.generation_config.model_copy(update={"actions": self._deps.registry.specs()})
            session = StreamingSession(
                conversation_id=conversation_id,
                capability=self._deps.generation,
                config=config,
                conversation=ctx.transcript,
                caller=self._deps.caller,
            )
            ctx.session = session
            ctx.broker = None
            logger.info(f"conversation {conversation_id}: started session {session.id}")
            return session

    async def stream(self, conversation_id: str) -> AsyncIterator[SessionEvent]:
        """Events of the conversation's current segment (consumed once)."""
        ctx = await self.context(conversation_id)
        if ctx.session is None:
            raise StreamStateInvalidError(f"conversation {conversation_id} has no session")
        async for event in self._drive(ctx, ctx.session.events()):
            yield event

    async def _drive(self, ctx: ConversationContext, events: AsyncIterator[SessionEvent]) -> AsyncIterator[SessionEvent]:
        session = ctx.session
        assert session is not None
        message = ChatMessage(
            conversation_id=ctx.conversation_id,
            role=MessageRole.assistant,
            status=MessageStatus.streaming,
            metadata={"session_id": session.id, "segment": len(session.segments)},
        )
        ctx.message = message
        await self._save(ctx, message)

        suspended = False
        async for event in events:
            if isinstance(event, TextDelta):
                message.content += event.text
                yield event
            elif isinstance(event, Suspended):
                suspended = True
            else:
                yield event
        await self._settle(ctx, message)

        # the segment is fully consumed before the batch is handed on
        if not suspended or session.state is not SessionState.suspended:
            return
        broker = ApprovalBroker(session.batch(), self._deps.registry.is_approval_required)
        ctx.broker = broker
        if broker.resolved:
            assert broker.outcome is not None
            ctx.broker = None
            async for follow_up in self._continue(ctx, broker.outcome):
                yield follow_up
            return
        yield Suspended(session_id=session.id, pending=broker.pending())

    async def _continue(
        self,
        ctx: ConversationContext,
        outcome: ApprovalOutcome,
        broker: Optional[ApprovalBroker] = None,
    ) -> AsyncIterator[SessionEvent]:
        session = ctx.session
        assert session is not None
        if broker is not None:
            # the batch stays submittable until its stream is consumed
            if ctx.broker is not broker:
                raise StreamStateInvalidError(
                    f"session {session.id}: batch was already continued",
                    user_message="These decisions were already applied.",
                    context={"session_id": session.id},
                )
            ctx.broker = None
        try:
            session.ensure_resumable()
        except StreamStateInvalidError as exc:
            yield session_failure(session, exc)
            await self._fail_message(ctx, exc)
            return
        events = self._deps.coordinator.continue_session(
            session,
            outcome,
            ctx=ActionContext(store=self._deps.store, conversation_id=ctx.conversation_id),
            ledger=ctx.ledger,
        )
        async for event in self._drive(ctx, events):
            yield event

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    async def pending(self, conversation_id: str) -> List[ActionInvocation]:
        ctx = await self.context(conversation_id)
        if not ctx.is_suspended or ctx.broker is None:
            return []
        return ctx.broker.pending()

    async def record_decision(self, conversation_id: str, invocation_id: str, approved: bool) -> bool:
        """Stage a single decision; returns the effective decision."""
        broker = await self._suspended_broker(conversation_id)
        return broker.record(invocation_id, approved, decided_by="user")

    async def wait_for_decisions(self, conversation_id: str, timeout: Optional[float] = None) -> ApprovalOutcome:
        """Wait until the suspended batch is resolved.

        Raises ``ApprovalTimeoutError`` after ``timeout`` (or the configured
        approval timeout); the batch stays pending.
        """
        broker = await self._suspended_broker(conversation_id)
        return await broker.wait(timeout if timeout is not None else self._deps.approval_timeout)

    async def submit_decisions(
        self,
        conversation_id: str,
        decisions: Mapping[str, bool],
        decided_by: Optional[str] = "user",
    ) -> AsyncIterator[SessionEvent]:
        """Resolve the suspended batch and return the resumed event stream.

        Undecided invocations are rejected. Raises ``StreamStateInvalidError``
        before anything executes when the conversation has no resumable
        session. The batch stays attached to the conversation until the
        returned stream is iterated, so a dropped stream can be submitted
        again; the decisions made first still apply.
        """
        ctx = await self.context(conversation_id)
        async with ctx.lock:
            broker = await self._suspended_broker(conversation_id)
            session = ctx.session
            assert session is not None
            try:
                session.ensure_resumable()
            except StreamStateInvalidError as exc:
                session_failure(session, exc)
                await self._fail_message(ctx, exc)
                raise
            outcome = broker.decide(decisions, decided_by=decided_by)
        return self._continue(ctx, outcome, broker)

    async def _suspended_broker(self, conversation_id: str) -> ApprovalBroker:
        ctx = await self.context(conversation_id)
        if not ctx.is_suspended or ctx.broker is None:
            raise StreamStateInvalidError(
                f"conversation {conversation_id} has no suspended batch",
                user_message="There are no actions waiting for a decision.",
                context={"conversation_id": conversation_id},
            )
        return ctx.broker

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel(self, conversation_id: str, discard: bool = False) -> Optional[StreamingSession]:
        ctx = await self.context(conversation_id)
        session = ctx.session
        if session is None:
            return None
        await session.cancel(discard=discard)
        ctx.broker = None
        message = ctx.message
        if message is not None and message.status is MessageStatus.streaming:
            if discard:
                message.content = ""
            await self._settle(ctx, message)
        return session

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    async def undo(self, conversation_id: str) -> Optional[LedgerEntry]:
        ctx = await self.context(conversation_id)
        return await ctx.ledger.undo()

    async def redo(self, conversation_id: str) -> Optional[LedgerEntry]:
        ctx = await self.context(conversation_id)
        return await ctx.ledger.redo()

    async def history(self, conversation_id: str) -> ReversibleLedger:
        return (await self.context(conversation_id)).ledger

    # ------------------------------------------------------------------
    # Transcript
    # ------------------------------------------------------------------

    async def transcript(self, conversation_id: str) -> List[ChatMessage]:
        return await self._deps.transcripts.list(conversation_id)

    async def _save(self, ctx: ConversationContext, message: ChatMessage) -> None:
        if not any(m.id == message.id for m in ctx.transcript):
            ctx.transcript.append(message)
        await self._deps.transcripts.save(message)

    async def _settle(self, ctx: ConversationContext, message: ChatMessage) -> None:
        session = ctx.session
        if session is None:
            return
        status = _MESSAGE_STATUS[session.state]
        if status is MessageStatus.streaming:
            return
        message.status = status
        if status is MessageStatus.error and session.error is not None:
            message.error = session.error.user_message
        if session.state is SessionState.suspended:
            message.metadata["pending"] = [inv.id for inv in session.pending()]
        await self._save(ctx, message)

    async def _fail_message(self, ctx: ConversationContext, error: AssistantError) -> None:
        if ctx.message is None:
            return
        ctx.message.status = MessageStatus.error
        ctx.message.error = error.user_message
        await self._save(ctx, ctx.message)


async def drain(events: AsyncIterator[SessionEvent]) -> List[SessionEvent]:
    """Collect every event of a stream."""
    return [event async for event in events]


async def run_until_settled(
    service: AssistantService, conversation_id: str, *, timeout: Optional[float] = None
) -> List[SessionEvent]:
    """Consume the current segment with an optional overall timeout."""
    return await asyncio.wait_for(drain(service.stream(conversation_id)), timeout=timeout)
