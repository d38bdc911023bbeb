from __future__ import annotations

"""Approval broker for one suspended batch of action invocations.

Decision rules
--------------

- Invocations whose action needs no approval are approved when the broker is
  created (``decided_by="policy"``).
- A decision is recorded at most once per invocation; repeating it (with any
  value) returns the original decision.
- ``decide`` is the batch submission: it records the supplied decisions and
  rejects every invocation that is still undecided (fail-closed). The batch is
  then resolved into an ``ApprovalOutcome``.
- ``wait`` suspends until the batch is resolved. It never decides anything on
  its own; on timeout the batch is left untouched.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import ApprovalTimeoutError
from ..schemas.domain import ActionInvocation, ApprovalOutcome, InvocationStatus, OutcomeKind

logger = logging.getLogger(__name__)

POLICY_DECIDER = "policy"
FAIL_CLOSED_DECIDER = "fail_closed"


class ApprovalBroker:
    def __init__(
        self,
        invocations: List[ActionInvocation],
        requires_approval: Callable[[str], bool],
    ) -> None:
        self._invocations = list(invocations)
        self._by_id: Dict[str, ActionInvocation] = {inv.id: inv for inv in self._invocations}
        self._decisions: Dict[str, bool] = {}
        self._outcome: Optional[ApprovalOutcome] = None
        self._resolved = asyncio.Event()

        for inv in self._invocations:
            inv.requires_approval = bool(requires_approval(inv.name))
            if inv.status is not InvocationStatus.pending:
                self._decisions[inv.id] = inv.status is not InvocationStatus.rejected
            elif not inv.requires_approval:
                inv.transition(InvocationStatus.approved)
                inv.decided_by = POLICY_DECIDER
                self._decisions[inv.id] = True
        if not self.pending():
            self._resolve()

    @property
    def invocations(self) -> List[ActionInvocation]:
        return list(self._invocations)

    @property
    def resolved(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Optional[ApprovalOutcome]:
        return self._outcome

    @property
    def needs_human(self) -> bool:
        return any(inv.requires_approval for inv in self._invocations)

    def pending(self) -> List[ActionInvocation]:
        return [inv for inv in self._invocations if inv.id not in self._decisions]

    def describe(self) -> List[dict]:
        """What the decision surface shows for each undecided invocation."""
        return [
            {
                "id": inv.id,
                "name": inv.name,
                "arguments": inv.arguments,
                "description": inv.description or inv.name,
            }
            for inv in self.pending()
        ]

    def record(self, invocation_id: str, approved: bool, decided_by: Optional[str] = None) -> bool:
        """Record one decision and return the effective decision.

        Raises ``KeyError`` for an id that is not part of this batch.
        """
        inv = self._by_id.get(invocation_id)
        if inv is None:
            raise KeyError(invocation_id)
        if invocation_id in self._decisions:
            return self._decisions[invocation_id]

        inv.transition(InvocationStatus.approved if approved else InvocationStatus.rejected)
        inv.decided_by = decided_by
        self._decisions[invocation_id] = bool(approved)
        logger.debug(f"invocation {invocation_id} ({inv.name}) {'approved' if approved else 'rejected'}")

        if not self.pending():
            self._resolve()
        return self._decisions[invocation_id]

    def decide(self, decisions: Mapping[str, bool], decided_by: Optional[str] = None) -> ApprovalOutcome:
        if self._outcome is not None:
            return self._outcome

        for invocation_id, approved in decisions.items():
            if invocation_id not in self._by_id:
                logger.warning(f"ignoring decision for unknown invocation {invocation_id}")
                continue
            self.record(invocation_id, bool(approved), decided_by)

        for inv in self.pending():
            inv.transition(InvocationStatus.rejected)
            inv.decided_by = FAIL_CLOSED_DECIDER
            self._decisions[inv.id] = False
            logger.info(f"invocation {inv.id} ({inv.name}) rejected: no decision supplied")

        if self._outcome is None:
            self._resolve()
        assert self._outcome is not None
        return self._outcome

    async def wait(self, timeout: Optional[float] = None) -> ApprovalOutcome:
        try:
            await asyncio.wait_for(self._resolved.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ApprovalTimeoutError(
                f"no decision within {timeout}s for {len(self.pending())} invocation(s)",
                context={"pending": [inv.id for inv in self.pending()]},
            ) from None
        assert self._outcome is not None
        return self._outcome

    def _resolve(self) -> None:
        approved = [inv for inv in self._invocations if self._decisions.get(inv.id)]
        rejected = [inv for inv in self._invocations if not self._decisions.get(inv.id)]
        if not rejected:
            kind = OutcomeKind.all_approved
        elif not approved:
            kind = OutcomeKind.all_rejected
        else:
            kind = OutcomeKind.mixed
        self._outcome = ApprovalOutcome(
            kind=kind,
            decisions=dict(self._decisions),
            approved=approved,
            rejected=rejected,
        )
        self._resolved.set()
        logger.info(f"approval batch resolved: {kind.value} ({len(approved)} approved, {len(rejected)} rejected)")
