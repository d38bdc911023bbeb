from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from ..errors import InvalidTransitionError
from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionCategory(str, Enum):
    vault = "vault"
    analysis = "analysis"
    utility = "utility"


class InvocationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    executing = "executing"
    completed = "completed"
    failed = "failed"


_TRANSITIONS: dict[InvocationStatus, frozenset[InvocationStatus]] = {
    InvocationStatus.pending: frozenset({InvocationStatus.approved, InvocationStatus.rejected}),
    InvocationStatus.approved: frozenset({InvocationStatus.executing}),
    InvocationStatus.executing: frozenset({InvocationStatus.completed, InvocationStatus.failed}),
    InvocationStatus.rejected: frozenset(),
    InvocationStatus.completed: frozenset(),
    InvocationStatus.failed: frozenset(),
}

TERMINAL_STATUSES = frozenset({InvocationStatus.rejected, InvocationStatus.completed, InvocationStatus.failed})


class SessionState(str, Enum):
    active = "active"
    suspended = "suspended"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class MessageRole(str, Enum):
    user = "user"
    assistant = "assistant"
    system = "system"


class MessageStatus(str, Enum):
    pending = "pending"
    streaming = "streaming"
    complete = "complete"
    error = "error"
    cancelled = "cancelled"


class OperationKind(str, Enum):
    create = "create"
    modify = "modify"
    delete = "delete"
    move = "move"
    copy = "copy"
    create_folder = "create_folder"
    delete_folder = "delete_folder"


class OutcomeKind(str, Enum):
    all_approved = "all_approved"
    all_rejected = "all_rejected"
    mixed = "mixed"


class ActionInvocation(BaseSchema):
    """One request by the generation capability to run a named action.

    The status only moves along the edges of the invocation lifecycle
    (``pending -> approved|rejected``, ``approved -> executing``,
    ``executing -> completed|failed``); use ``transition`` to change it.
    Terminal invocations are never mutated again.
    """

    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    session_id: str
    status: InvocationStatus = InvocationStatus.pending
    description: str = ""
    requires_approval: bool = True
    decided_by: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    requested_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition(self, target: InvocationStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def transition(self, target: InvocationStatus) -> "ActionInvocation":
        if not self.can_transition(target):
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        self.status = target
        self.updated_at = _utc_now()
        return self


class ActionResultPayload(BaseSchema):
    """Result of one invocation as handed back to the generation capability."""

    invocation_id: str
    name: str
    ok: bool
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    declined: bool = False


class ResumeRequest(BaseSchema):
    token: str
    results: List[ActionResultPayload] = Field(default_factory=list)


class ApprovalOutcome(BaseSchema):
    kind: OutcomeKind
    decisions: Dict[str, bool] = Field(default_factory=dict)
    approved: List[ActionInvocation] = Field(default_factory=list)
    rejected: List[ActionInvocation] = Field(default_factory=list)


class ChatMessage(BaseSchema):
    """A transcript record."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    conversation_id: str
    role: MessageRole
    content: str = ""
    status: MessageStatus = MessageStatus.complete
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utc_now)
