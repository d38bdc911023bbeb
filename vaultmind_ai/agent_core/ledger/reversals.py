"""Undo/redo effect pairs for document-store operations.

Each builder returns a ``Reversal`` describing an operation that has *already
been applied*: ``undo`` reverts it and ``redo`` applies it again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..schemas.domain import OperationKind
from .ledger import Effect, LedgerEntry

if TYPE_CHECKING:
    from ..actions.store import DocumentStore


@dataclass(frozen=True)
class Reversal:
    kind: OperationKind
    description: str
    undo: Effect
    redo: Effect

    def to_entry(self) -> LedgerEntry:
        return LedgerEntry(kind=self.kind, description=self.description, undo=self.undo, redo=self.redo)


def create_file(store: DocumentStore, path: str, content: str) -> Reversal:
    async def undo() -> None:
        await store.delete(path)

    async def redo() -> None:
        await store.create(path, content)

    return Reversal(OperationKind.create, f"Create {path}", undo, redo)


def modify_file(store: DocumentStore, path: str, old_content: str, new_content: str) -> Reversal:
    async def undo() -> None:
        await store.modify(path, old_content)

    async def redo() -> None:
        await store.modify(path, new_content)

    return Reversal(OperationKind.modify, f"Modify {path}", undo, redo)


def delete_file(store: DocumentStore, path: str, content: str) -> Reversal:
    async def undo() -> None:
        await store.create(path, content)

    async def redo() -> None:
        await store.delete(path)

    return Reversal(OperationKind.delete, f"Delete {path}", undo, redo)


def create_folder(store: DocumentStore, path: str) -> Reversal:
    async def undo() -> None:
        await store.delete_folder(path)

    async def redo() -> None:
        await store.create_folder(path)

    return Reversal(OperationKind.create_folder, f"Create folder {path}", undo, redo)


def delete_folder(store: DocumentStore, path: str) -> Reversal:
    async def undo() -> None:
        await store.create_folder(path)

    async def redo() -> None:
        await store.delete_folder(path)

    return Reversal(OperationKind.delete_folder, f"Delete folder {path}", undo, redo)


def move_file(store: DocumentStore, source: str, destination: str) -> Reversal:
    async def undo() -> None:
        await store.move(destination, source)

    async def redo() -> None:
        await store.move(source, destination)

    return Reversal(OperationKind.move, f"Move {source} to {destination}", undo, redo)


def copy_file(store: DocumentStore, source: str, destination: str) -> Reversal:
    async def undo() -> None:
        await store.delete(destination)

    async def redo() -> None:
        await store.copy(source, destination)

    return Reversal(OperationKind.copy, f"Copy {source} to {destination}", undo, redo)
