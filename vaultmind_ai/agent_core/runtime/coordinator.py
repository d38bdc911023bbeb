from __future__ import annotations

"""Resumable execution coordinator.

``ResumableCoordinator`` takes a suspended session and the resolved approval
outcome of its batch, executes the approved invocations, and resumes
generation with one result per invocation.

Execution model
---------------

- The resumption token is checked first. A session that cannot be resumed
  raises ``StreamStateInvalidError`` and nothing executes.
- Approved invocations execute on a LangGraph state machine, one step per
  iteration, in request order. A run of consecutive parallel-safe invocations
  forms a single step and executes concurrently.
- Each invocation moves ``approved -> executing -> completed|failed``.
  Successful executions that return a reversal are recorded in the
  conversation's ledger.
- Rejected invocations are never executed; generation receives a "declined"
  notice for each of them.
- An exception escaping an execution step fails the session and every
  approved invocation that has not finished, including later steps.
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Dict, List

from langgraph.graph import END, StateGraph

from ...core.monitoring import log_action_executed
from ..actions.base import ActionContext
from ..errors import AssistantError, classify_exception
from ..ledger.ledger import ReversibleLedger
from ..schemas.domain import (
    ActionInvocation,
    ActionResultPayload,
    ApprovalOutcome,
    InvocationStatus,
    SessionState,
)
from ..schemas.events import ActionExecuted, SessionEvent
from .models import CoordinatorDeps, _Execution, _ExecutionState
from .session import StreamingSession, failed_event

logger = logging.getLogger(__name__)

DECLINED_MESSAGE = "The user declined this action. Do not retry it unless asked."


def declined_result(inv: ActionInvocation) -> ActionResultPayload:
    return ActionResultPayload(
        invocation_id=inv.id,
        name=inv.name,
        ok=False,
        output={"declined": True},
        error=DECLINED_MESSAGE,
        declined=True,
    )


class ResumableCoordinator:
    """Execute an approved batch and resume the suspended session."""

    def __init__(self, *, deps: CoordinatorDeps) -> None:
        self._deps = deps
        self._executions: Dict[str, _Execution] = {}
        self._graph = self._build_graph()

    def _build_graph(self):
        g: StateGraph = StateGraph(_ExecutionState)
        g.add_node("start", self._node_start)
        g.add_node("execute", self._node_execute_step)
        g.set_entry_point("start")
        g.add_conditional_edges("start", self._route, {"continue": "execute", "finish": END})
        g.add_conditional_edges("execute", self._route, {"continue": "execute", "finish": END})
        return g.compile()

    def plan_steps(self, approved: List[ActionInvocation]) -> List[List[str]]:
        """Group approved invocations into steps, keeping request order."""
        steps: List[List[str]] = []
        previous_parallel = False
        for inv in approved:
            parallel = self._deps.registry.is_parallel_safe(inv.name)
            if parallel and previous_parallel:
                steps[-1].append(inv.id)
            else:
                steps.append([inv.id])
            previous_parallel = parallel
        return steps

    async def continue_session(
        self,
        session: StreamingSession,
        outcome: ApprovalOutcome,
        *,
        ctx: ActionContext,
        ledger: ReversibleLedger,
    ) -> AsyncIterator[SessionEvent]:
        """Execute ``outcome.approved`` and stream the resumed generation.

        ``StreamStateInvalidError`` is raised before anything executes when the
        session cannot be resumed.
        """
        session.ensure_resumable()
        execution = _Execution(session=session, outcome=outcome, ctx=ctx, ledger=ledger)
        self._executions[session.id] = execution

        state: _ExecutionState = {
            "session_id": session.id,
            "steps": self.plan_steps(outcome.approved),
            "idx": 0,
            "results": [],
        }
        executed: Dict[str, ActionResultPayload] = {}
        # one superstep per execution step, plus the entry node
        limit = max(25, len(state["steps"]) + 2)
        try:
            async for update in self._graph.astream(state, {"recursion_limit": limit}, stream_mode="updates"):
                for node_update in update.values():
                    for payload in (node_update or {}).get("results", []):
                        result = ActionResultPayload.model_validate(payload)
                        executed[result.invocation_id] = result
                        yield ActionExecuted(
                            invocation_id=result.invocation_id,
                            name=result.name,
                            ok=result.ok,
                            output=result.output,
                            error=result.error,
                        )
        except Exception as exc:
            error = classify_exception(exc)
            logger.error(f"batch execution for session {session.id} failed: {error.message}", exc_info=True)
            for inv in outcome.approved:
                if inv.status is InvocationStatus.approved:
                    inv.transition(InvocationStatus.executing)
                if inv.status is InvocationStatus.executing:
                    inv.transition(InvocationStatus.failed)
                    inv.error = error.message
            yield session_failure(session, error)
            return
        finally:
            self._executions.pop(session.id, None)

        results: List[ActionResultPayload] = []
        for inv in session.batch():
            if inv.id in executed:
                results.append(executed[inv.id])
            elif inv.status is InvocationStatus.rejected:
                results.append(declined_result(inv))

        async for event in session.resume(results):
            yield event

    async def _node_start(self, state: _ExecutionState) -> Dict[str, Any]:
        """Graph entry node. Currently a no-op."""
        return {}

    def _route(self, state: _ExecutionState) -> str:
        return "continue" if state["idx"] < len(state["steps"]) else "finish"

    async def _node_execute_step(self, state: _ExecutionState) -> Dict[str, Any]:
        execution = self._executions[state["session_id"]]
        idx = state["idx"]
        by_id = {inv.id: inv for inv in execution.outcome.approved}
        step = [by_id[i] for i in state["steps"][idx]]

        for inv in step:
            inv.transition(InvocationStatus.executing)

        if len(step) == 1:
            payloads = [await self._execute_one(execution, step[0])]
        else:
            payloads = list(await asyncio.gather(*(self._execute_one(execution, inv) for inv in step)))
        return {"idx": idx + 1, "results": [p.model_dump() for p in payloads]}

    async def _execute_one(self, execution: _Execution, inv: ActionInvocation) -> ActionResultPayload:
        started = time.perf_counter()
        ctx = ActionContext(
            store=execution.ctx.store,
            conversation_id=execution.ctx.conversation_id,
            invocation_id=inv.id,
        )
        result = await self._deps.registry.execute(inv.name, inv.arguments, ctx)
        duration_ms = (time.perf_counter() - started) * 1000

        if result.ok:
            inv.transition(InvocationStatus.completed)
            inv.result = dict(result.output)
            if result.reversal is not None:
                await execution.ledger.record(result.reversal.to_entry())
        else:
            inv.transition(InvocationStatus.failed)
            inv.error = result.error
            inv.result = dict(result.output) if result.output else None
        logger.info(f"executed {inv.name} ({inv.id}): ok={result.ok}")
        log_action_executed(inv.name, inv.id, result.ok, duration_ms)

        return ActionResultPayload(
            invocation_id=inv.id,
            name=inv.name,
            ok=result.ok,
            output=dict(result.output),
            error=result.error,
        )


def session_failure(session: StreamingSession, error: AssistantError) -> SessionEvent:
    """Fail ``session`` outside of its own stream (e.g. during batch execution)."""
    session.state = SessionState.failed
    session.error = error
    return failed_event(error)
