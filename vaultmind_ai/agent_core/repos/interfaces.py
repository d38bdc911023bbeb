from __future__ import annotations

"""Repository interface contracts.

The transcript is the only state the orchestration layer persists. The
service depends on this Protocol rather than a concrete implementation.

Contract guidelines
-------------------

- All methods are async.
- ``save`` is an upsert keyed by message id, so a streaming assistant message
  can be saved repeatedly as its content and status change.
- ``list`` returns messages in creation order.
"""

from typing import List, Protocol

from ..schemas.domain import ChatMessage


class TranscriptRepository(Protocol):
    """Persist and query conversation transcripts."""

    async def save(self, message: ChatMessage) -> None:
        """
        Insert or update a transcript message.

        Args:
            message: The message to persist.
        """
        ...

    async def list(self, conversation_id: str) -> List[ChatMessage]:
        """
        List the messages of a conversation in creation order.

        Args:
            conversation_id: The conversation to read.
        """
        ...

    async def delete_conversation(self, conversation_id: str) -> None:
        """Remove every message of a conversation. Unknown ids are a no-op."""
        ...
