"""Orchestration core: actions, approvals, streaming sessions and undo.

Design overview
---------------

Generation and execution are strictly separated:

- The generation capability (``agent_core.generation``) only *requests*
  actions. Its raw stream is normalized into canonical events and consumed by
  a ``StreamingSession``, which suspends when requested actions are pending.
- The ``ApprovalBroker`` resolves each suspended batch. Decisions are
  fail-closed: anything not explicitly approved is rejected.
- The ``ResumableCoordinator`` executes approved invocations through the
  ``ActionRegistry`` on a LangGraph state machine and resumes the session
  with one result per invocation.
- Reversible effects are recorded in a per-conversation ``ReversibleLedger``.
- Opening a generation segment goes through the resilience wrapper (retries
  wrap the shared circuit breaker).

Typical usage
-------------

Most applications should use ``agent_core.service.AssistantService``, built
with ``agent_core.factory.build_service``:

1. ``start_turn`` and consume ``stream``.
2. On ``Suspended``, collect decisions and call ``submit_decisions``.
3. Use ``undo``/``redo`` to walk the conversation's ledger.
"""

from .errors import AssistantError, ErrorCode
from .factory import build_default_registry, build_resilient_caller, build_service
from .schemas.domain import (
    ActionInvocation,
    ApprovalOutcome,
    ChatMessage,
    InvocationStatus,
    SessionState,
)
from .service import AssistantService, AssistantServiceDeps

__all__ = [
    "ActionInvocation",
    "ApprovalOutcome",
    "AssistantError",
    "AssistantService",
    "AssistantServiceDeps",
    "ChatMessage",
    "ErrorCode",
    "InvocationStatus",
    "SessionState",
    "build_default_registry",
    "build_resilient_caller",
    "build_service",
]
