"""
Undo/Redo API Endpoints.

Walk the conversation's ledger of reversible document-store effects.
A failed effect leaves the ledger unchanged and is answered with 500.
"""

from fastapi import APIRouter

from vaultmind_ai.server.schemas import HistoryEntry, HistoryResponse, UndoRedoResponse
from vaultmind_ai.server.services.deps import AssistantServiceDep

router = APIRouter()


@router.get("/{conversation_id}/history", response_model=HistoryResponse, summary="Ledger History")
async def get_history(conversation_id: str, service: AssistantServiceDep):
    return HistoryResponse.from_ledger(await service.history(conversation_id))


@router.post("/{conversation_id}/undo", response_model=UndoRedoResponse, summary="Undo")
async def undo(conversation_id: str, service: AssistantServiceDep):
    entry = await service.undo(conversation_id)
    return UndoRedoResponse(
        entry=HistoryEntry.from_entry(entry) if entry is not None else None,
        history=HistoryResponse.from_ledger(await service.history(conversation_id)),
    )


@router.post("/{conversation_id}/redo", response_model=UndoRedoResponse, summary="Redo")
async def redo(conversation_id: str, service: AssistantServiceDep):
    entry = await service.redo(conversation_id)
    return UndoRedoResponse(
        entry=HistoryEntry.from_entry(entry) if entry is not None else None,
        history=HistoryResponse.from_ledger(await service.history(conversation_id)),
    )
