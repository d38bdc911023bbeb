"""Per-conversation state.

Everything mutable that belongs to one conversation lives in a
``ConversationContext``: its transcript, its ledger, the current streaming
session, the assistant message being written for the current segment, and the
approval broker of the current suspended batch. Contexts share nothing
mutable with each other.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from ..approval.broker import ApprovalBroker
from ..ledger.ledger import ReversibleLedger
from ..schemas.domain import ChatMessage, SessionState
from .session import StreamingSession


@dataclass
class ConversationContext:
    conversation_id: str
    ledger: ReversibleLedger = field(default_factory=ReversibleLedger)
    transcript: List[ChatMessage] = field(default_factory=list)
    session: Optional[StreamingSession] = None
    message: Optional[ChatMessage] = None
    broker: Optional[ApprovalBroker] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_streaming(self) -> bool:
        return self.session is not None and self.session.state is SessionState.active

    @property
    def is_suspended(self) -> bool:
        return self.session is not None and self.session.state is SessionState.suspended
