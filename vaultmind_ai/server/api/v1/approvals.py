"""
Approval API Endpoints.

The decision surface for a suspended session: list the actions awaiting a
decision, then submit a decision map. Submitting resumes generation and the
response streams the executed actions and the resumed output as SSE.
"""

from fastapi import APIRouter, Request

from vaultmind_ai.core.logging_config import get_logger
from vaultmind_ai.server.api.v1.streaming import event_stream
from vaultmind_ai.server.schemas import DecisionSubmit, PendingAction, PendingActions
from vaultmind_ai.server.services.deps import AssistantServiceDep

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/{conversation_id}/approvals",
    response_model=PendingActions,
    summary="List Pending Actions",
    description="Actions of the suspended batch that are waiting for a decision.",
)
async def list_pending(conversation_id: str, service: AssistantServiceDep):
    ctx = await service.context(conversation_id)
    pending = await service.pending(conversation_id)
    return PendingActions(
        session_id=ctx.session.id if ctx.session is not None else None,
        pending=[PendingAction.from_invocation(inv) for inv in pending],
    )


@router.post(
    "/{conversation_id}/approvals",
    summary="Submit Decisions",
    description="Approve or reject the suspended batch and stream the resumed response.",
    responses={
        200: {"description": "SSE stream established", "content": {"text/event-stream": {}}},
        409: {"description": "No suspended batch, or the session can no longer be resumed"},
    },
)
async def submit_decisions(
    conversation_id: str, decision_in: DecisionSubmit, request: Request, service: AssistantServiceDep
):
    """
    Submit decisions for the suspended batch.

    Actions missing from the decision map are rejected.
    """
    approved = sum(1 for v in decision_in.decisions.values() if v)
    logger.info(
        f"Decisions for conversation {conversation_id}: {approved} approved, "
        f"{len(decision_in.decisions) - approved} rejected"
    )
    events = await service.submit_decisions(conversation_id, decision_in.decisions, decided_by=decision_in.decided_by)
    return event_stream(request, service, conversation_id, events)
