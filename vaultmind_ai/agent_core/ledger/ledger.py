from __future__ import annotations

"""Reversible-operation ledger.

A bounded, linear history of reversible side effects with a cursor:

- ``record`` waits for an in-flight ``undo`` or ``redo``, discards every
  entry after the cursor (the redo tail), appends the new entry and moves
  the cursor onto it. When the history exceeds its
  capacity the oldest entry is evicted.
- ``undo`` runs the entry at the cursor's undo effect and moves the cursor
  back; ``redo`` runs the next entry's redo effect and moves it forward.
  Both are no-ops at the bounds.
- If an effect raises, the cursor does not move and ``LedgerEffectError`` is
  raised.

One ledger belongs to one conversation.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional
from uuid import uuid4

from ..errors import LedgerEffectError
from ..schemas.domain import OperationKind

logger = logging.getLogger(__name__)

Effect = Callable[[], Awaitable[None]]

DEFAULT_CAPACITY = 50


@dataclass(frozen=True)
class LedgerEntry:
    kind: OperationKind
    description: str
    undo: Effect
    redo: Effect
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ReversibleLedger:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._entries: List[LedgerEntry] = []
        self._cursor = -1
        self._lock = asyncio.Lock()

    @property
    def cursor(self) -> int:
        """Index of the most recently applied entry, ``-1`` when nothing is applied."""
        return self._cursor

    def can_undo(self) -> bool:
        return self._cursor >= 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def history(self) -> List[LedgerEntry]:
        return list(self._entries)

    async def record(self, entry: LedgerEntry) -> LedgerEntry:
        """Append ``entry`` after the cursor. Waits for an in-flight undo or redo."""
        async with self._lock:
            del self._entries[self._cursor + 1 :]
            self._entries.append(entry)
            self._cursor = len(self._entries) - 1
            while len(self._entries) > self.capacity and self._cursor > 0:
                self._entries.pop(0)
                self._cursor -= 1
        logger.debug(f"ledger recorded {entry.kind.value}: {entry.description}")
        return entry

    async def undo(self) -> Optional[LedgerEntry]:
        async with self._lock:
            if not self.can_undo():
                return None
            entry = self._entries[self._cursor]
            try:
                await entry.undo()
            except Exception as exc:
                raise LedgerEffectError(
                    f"undo of {entry.kind.value} failed: {exc}",
                    user_message=f"Could not undo '{entry.description}'.",
                    context={"entry_id": entry.id},
                    cause=exc,
                ) from exc
            self._cursor -= 1
            logger.info(f"undid {entry.kind.value}: {entry.description}")
            return entry

    async def redo(self) -> Optional[LedgerEntry]:
        async with self._lock:
            if not self.can_redo():
                return None
            entry = self._entries[self._cursor + 1]
            try:
                await entry.redo()
            except Exception as exc:
                raise LedgerEffectError(
                    f"redo of {entry.kind.value} failed: {exc}",
                    user_message=f"Could not redo '{entry.description}'.",
                    context={"entry_id": entry.id},
                    cause=exc,
                ) from exc
            self._cursor += 1
            logger.info(f"redid {entry.kind.value}: {entry.description}")
            return entry

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1
