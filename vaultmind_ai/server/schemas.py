"""
API Schemas.

Request and response models for the conversation API. Session events are
streamed as the core's own event models; the models here cover request bodies
and the non-streaming responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from vaultmind_ai.agent_core.ledger import LedgerEntry, ReversibleLedger
from vaultmind_ai.agent_core.schemas.domain import ActionInvocation, OperationKind, SessionState


class TurnCreate(BaseModel):
    """
    Schema for starting a conversation turn.
    """

    text: str = Field(..., min_length=1, description="The user's message.")


class DecisionSubmit(BaseModel):
    """
    Schema for deciding a suspended batch.

    Invocations missing from ``decisions`` are rejected.
    """

    decisions: Dict[str, bool] = Field(
        default_factory=dict, description="Map of invocation id to approve (true) or reject (false)."
    )
    decided_by: Optional[str] = Field(default="user", description="Who made the decisions.")


class CancelRequest(BaseModel):
    discard: bool = Field(default=False, description="Discard the partial response text.")


class CancelResponse(BaseModel):
    session_id: Optional[str] = None
    state: Optional[SessionState] = None


class PendingAction(BaseModel):
    """An invocation awaiting a decision, as shown on the decision surface."""

    id: str
    name: str
    description: str
    arguments: Dict[str, Any]

    @classmethod
    def from_invocation(cls, inv: ActionInvocation) -> "PendingAction":
        return cls(id=inv.id, name=inv.name, description=inv.description, arguments=inv.arguments)


class PendingActions(BaseModel):
    session_id: Optional[str] = None
    pending: List[PendingAction] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    id: str
    kind: OperationKind
    description: str
    timestamp: datetime

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "HistoryEntry":
        return cls(id=entry.id, kind=entry.kind, description=entry.description, timestamp=entry.timestamp)


class HistoryResponse(BaseModel):
    entries: List[HistoryEntry] = Field(default_factory=list)
    cursor: int = 0
    can_undo: bool = False
    can_redo: bool = False

    @classmethod
    def from_ledger(cls, ledger: ReversibleLedger) -> "HistoryResponse":
        return cls(
            entries=[HistoryEntry.from_entry(e) for e in ledger.history()],
            cursor=ledger.cursor,
            can_undo=ledger.can_undo(),
            can_redo=ledger.can_redo(),
        )


class UndoRedoResponse(BaseModel):
    """Result of an undo or redo request; ``entry`` is null when there was nothing to do."""

    entry: Optional[HistoryEntry] = None
    history: HistoryResponse


class ErrorEvent(BaseModel):
    """Error emitted on an SSE stream when the stream itself breaks."""

    type: str = "error"
    error: str
    details: Optional[str] = None
