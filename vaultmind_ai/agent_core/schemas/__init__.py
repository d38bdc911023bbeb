"""Schemas and DTOs for the orchestration core."""

from .config import ActionSpec, ApprovalSettings, GenerationConfig
from .domain import (
    ActionCategory,
    ActionInvocation,
    ActionResultPayload,
    ApprovalOutcome,
    ChatMessage,
    InvocationStatus,
    MessageRole,
    MessageStatus,
    OperationKind,
    OutcomeKind,
    ResumeRequest,
    SessionState,
)
from .events import (
    ActionExecuted,
    ActionRequested,
    Completed,
    Failed,
    Interrupted,
    SessionEvent,
    Suspended,
    TextDelta,
)

__all__ = [
    "ActionCategory",
    "ActionExecuted",
    "ActionInvocation",
    "ActionRequested",
    "ActionResultPayload",
    "ActionSpec",
    "ApprovalOutcome",
    "ApprovalSettings",
    "ChatMessage",
    "Completed",
    "Failed",
    "GenerationConfig",
    "Interrupted",
    "InvocationStatus",
    "MessageRole",
    "MessageStatus",
    "OperationKind",
    "OutcomeKind",
    "ResumeRequest",
    "SessionEvent",
    "SessionState",
    "Suspended",
    "TextDelta",
]
