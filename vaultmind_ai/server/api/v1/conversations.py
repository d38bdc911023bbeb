"""
Conversation API Endpoints.

Starting turns, reading the transcript and cancelling the active session.

- ``POST /{conversation_id}/turns`` streams the session's events over SSE.
  A second turn while a session is still streaming is rejected with 409.
- ``POST /{conversation_id}/cancel`` stops the session; the partial text is
  kept unless ``discard`` is set.
"""

from typing import List, Optional

from fastapi import APIRouter, Request

from vaultmind_ai.agent_core.schemas.domain import ChatMessage
from vaultmind_ai.core.logging_config import get_logger
from vaultmind_ai.server.api.v1.streaming import event_stream
from vaultmind_ai.server.schemas import CancelRequest, CancelResponse, TurnCreate
from vaultmind_ai.server.services.deps import AssistantServiceDep

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "/{conversation_id}/turns",
    summary="Start Turn",
    description="Send a user message and stream the assistant's response as Server-Sent Events.",
    responses={
        200: {"description": "SSE stream established", "content": {"text/event-stream": {}}},
        409: {"description": "A session is already streaming for this conversation"},
    },
)
async def start_turn(conversation_id: str, turn_in: TurnCreate, request: Request, service: AssistantServiceDep):
    """
    Start a conversation turn.

    The stream carries ``text_delta``, ``action_requested``, ``action_executed``,
    ``suspended``, ``completed`` and ``failed`` events. A ``suspended`` event
    lists the actions waiting for a decision.
    """
    logger.info(f"Starting turn for conversation {conversation_id}")
    await service.start_turn(conversation_id, turn_in.text)
    return event_stream(request, service, conversation_id, service.stream(conversation_id))


@router.get(
    "/{conversation_id}/messages",
    response_model=List[ChatMessage],
    summary="List Messages",
    description="Retrieve the conversation transcript in order.",
)
async def list_messages(conversation_id: str, service: AssistantServiceDep):
    return await service.transcript(conversation_id)


@router.post(
    "/{conversation_id}/cancel",
    response_model=CancelResponse,
    summary="Cancel Session",
    description="Cancel the conversation's active or suspended session.",
)
async def cancel_session(
    conversation_id: str, service: AssistantServiceDep, cancel_in: Optional[CancelRequest] = None
):
    """
    Cancel the session.

    Pending actions of a suspended session are left undecided and never run.
    """
    discard = cancel_in.discard if cancel_in is not None else False
    session = await service.cancel(conversation_id, discard=discard)
    if session is None:
        return CancelResponse()
    return CancelResponse(session_id=session.id, state=session.state)
