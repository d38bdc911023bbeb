"""
Server-Sent Events helpers shared by the conversation endpoints.
"""

import json
from typing import Any, AsyncIterator, Dict, Union

from fastapi import Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from vaultmind_ai.agent_core.schemas.domain import SessionState
from vaultmind_ai.agent_core.schemas.events import SessionEvent
from vaultmind_ai.agent_core.service import AssistantService
from vaultmind_ai.core.logging_config import get_logger
from vaultmind_ai.server.schemas import ErrorEvent

logger = get_logger(__name__)


def serialize_event(event: Union[BaseModel, Dict[str, Any]]) -> str:
    """
    Serialize an event to a JSON string.

    Pydantic models use ``model_dump_json`` so datetimes and enums serialize
    consistently; a serialization failure is reported as an ``ErrorEvent``.
    """
    try:
        if isinstance(event, BaseModel):
            return event.model_dump_json()
        return json.dumps(event)
    except Exception as e:
        logger.error(f"Failed to serialize event: {e}", exc_info=True)
        return ErrorEvent(error="Failed to serialize event", details=str(e)).model_dump_json()


def event_stream(
    request: Request,
    service: AssistantService,
    conversation_id: str,
    events: AsyncIterator[SessionEvent],
) -> EventSourceResponse:
    """
    Stream session events as SSE, one ``event: <type>`` message per event.

    When the client disconnects the conversation's session is cancelled,
    keeping the text generated so far.
    """

    async def event_generator():
        disconnected = False
        try:
            async for event in events:
                if await request.is_disconnected():
                    logger.info(f"Client disconnected from conversation {conversation_id}")
                    disconnected = True
                    break
                yield {"event": getattr(event, "type", "message"), "data": serialize_event(event)}
        except Exception as e:
            logger.error(f"Error in event stream for conversation {conversation_id}: {e}", exc_info=True)
            yield {"event": "error", "data": ErrorEvent(error="stream failed", details=str(e)).model_dump_json()}
        finally:
            if disconnected:
                ctx = await service.context(conversation_id)
                if ctx.session is not None and ctx.session.state is SessionState.active:
                    await service.cancel(conversation_id)

    return EventSourceResponse(event_generator())
