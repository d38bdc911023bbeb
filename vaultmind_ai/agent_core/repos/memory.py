"""In-memory transcript repository, used for local runs and tests."""

from __future__ import annotations

from typing import Dict, List

from ..schemas.domain import ChatMessage


class InMemoryTranscriptRepository:
    def __init__(self) -> None:
        self._messages: Dict[str, Dict[str, ChatMessage]] = {}

    async def save(self, message: ChatMessage) -> None:
        self._messages.setdefault(message.conversation_id, {})[message.id] = message.model_copy(deep=True)

    async def list(self, conversation_id: str) -> List[ChatMessage]:
        return [m.model_copy(deep=True) for m in self._messages.get(conversation_id, {}).values()]

    async def delete_conversation(self, conversation_id: str) -> None:
        self._messages.pop(conversation_id, None)
