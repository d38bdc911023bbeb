"""Canonical stream events.

Raw events emitted by the generation capability come in several shapes; the
normalization adapter turns them into the events below. The streaming session
consumes the first five; callers of the session receive ``SessionEvent``.

Each event carries a ``type`` discriminator so it can be serialized directly
onto an SSE stream.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from .base import BaseSchema
from .domain import ActionInvocation


class TextDelta(BaseSchema):
    type: Literal["text_delta"] = "text_delta"
    text: str


class ActionRequested(BaseSchema):
    type: Literal["action_requested"] = "action_requested"
    invocation_id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class Interrupted(BaseSchema):
    """Generation paused; ``resumption_token`` continues it later."""

    type: Literal["interrupted"] = "interrupted"
    resumption_token: Optional[str] = None


class Completed(BaseSchema):
    type: Literal["completed"] = "completed"
    final_text: str = ""
    resumption_token: Optional[str] = None


class Failed(BaseSchema):
    type: Literal["failed"] = "failed"
    code: str
    message: str
    user_message: str
    retryable: bool = False


class ActionExecuted(BaseSchema):
    type: Literal["action_executed"] = "action_executed"
    invocation_id: str
    name: str
    ok: bool
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class Suspended(BaseSchema):
    type: Literal["suspended"] = "suspended"
    session_id: str
    pending: List[ActionInvocation] = Field(default_factory=list)


CanonicalEvent = Union[TextDelta, ActionRequested, Interrupted, Completed, Failed]

SessionEvent = Annotated[
    Union[TextDelta, ActionRequested, ActionExecuted, Suspended, Completed, Failed],
    Field(discriminator="type"),
]
