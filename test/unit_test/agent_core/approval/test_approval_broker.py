from __future__ import annotations

import asyncio
from typing import List

import pytest

from vaultmind_ai.agent_core.approval import ApprovalBroker
from vaultmind_ai.agent_core.errors import ApprovalTimeoutError
from vaultmind_ai.agent_core.schemas.domain import ActionInvocation, InvocationStatus, OutcomeKind

READ_ONLY = {"read_note", "search_notes"}


def _needs_approval(name: str) -> bool:
    return name not in READ_ONLY


def _batch(*names: str) -> List[ActionInvocation]:
    return [ActionInvocation(id=f"{name}-{i}", name=name, session_id="s1") for i, name in enumerate(names)]


def test_policy_approves_actions_without_approval() -> None:
    invocations = _batch("read_note", "create_note")
    broker = ApprovalBroker(invocations, _needs_approval)
    assert invocations[0].status is InvocationStatus.approved
    assert invocations[0].decided_by == "policy"
    assert [inv.id for inv in broker.pending()] == ["create_note-1"]
    assert broker.needs_human
    assert not broker.resolved


def test_batch_without_approvals_resolves_immediately() -> None:
    broker = ApprovalBroker(_batch("read_note", "search_notes"), _needs_approval)
    assert broker.resolved
    assert broker.outcome.kind is OutcomeKind.all_approved
    assert not broker.needs_human


def test_record_is_idempotent() -> None:
    broker = ApprovalBroker(_batch("create_note", "delete_file"), _needs_approval)
    assert broker.record("create_note-0", False, "user") is False
    assert broker.record("create_note-0", True, "user") is False
    assert broker.invocations[0].status is InvocationStatus.rejected
    assert not broker.resolved


def test_record_unknown_id_raises() -> None:
    broker = ApprovalBroker(_batch("create_note"), _needs_approval)
    with pytest.raises(KeyError):
        broker.record("nope", True)


def test_last_recorded_decision_resolves() -> None:
    broker = ApprovalBroker(_batch("create_note", "delete_file"), _needs_approval)
    broker.record("create_note-0", True)
    broker.record("delete_file-1", False)
    assert broker.resolved
    outcome = broker.outcome
    assert outcome.kind is OutcomeKind.mixed
    assert [inv.id for inv in outcome.approved] == ["create_note-0"]
    assert [inv.id for inv in outcome.rejected] == ["delete_file-1"]
    assert outcome.decisions == {"create_note-0": True, "delete_file-1": False}


def test_decide_rejects_missing_decisions() -> None:
    invocations = _batch("create_note", "delete_file")
    broker = ApprovalBroker(invocations, _needs_approval)
    outcome = broker.decide({"create_note-0": True, "ghost": True}, decided_by="user")
    assert outcome.kind is OutcomeKind.mixed
    assert invocations[0].decided_by == "user"
    assert invocations[1].status is InvocationStatus.rejected
    assert invocations[1].decided_by == "fail_closed"


def test_decide_empty_rejects_everything() -> None:
    broker = ApprovalBroker(_batch("create_note", "move_file"), _needs_approval)
    assert broker.decide({}).kind is OutcomeKind.all_rejected


def test_decide_after_resolution_returns_same_outcome() -> None:
    broker = ApprovalBroker(_batch("create_note"), _needs_approval)
    first = broker.decide({"create_note-0": True})
    second = broker.decide({"create_note-0": False})
    assert second is first
    assert first.kind is OutcomeKind.all_approved


def test_already_decided_invocations_keep_their_decision() -> None:
    invocations = _batch("create_note", "delete_file")
    invocations[0].transition(InvocationStatus.rejected)
    broker = ApprovalBroker(invocations, _needs_approval)
    assert [inv.id for inv in broker.pending()] == ["delete_file-1"]
    broker.record("delete_file-1", True)
    assert broker.outcome.kind is OutcomeKind.mixed


def test_describe_lists_pending_invocations() -> None:
    invocations = _batch("create_note")
    invocations[0].arguments = {"path": "a.md"}
    broker = ApprovalBroker(invocations, _needs_approval)
    assert broker.describe() == [
        {"id": "create_note-0", "name": "create_note", "arguments": {"path": "a.md"}, "description": "create_note"}
    ]


@pytest.mark.asyncio
async def test_wait_returns_once_resolved() -> None:
    broker = ApprovalBroker(_batch("create_note"), _needs_approval)
    waiter = asyncio.create_task(broker.wait())
    await asyncio.sleep(0)
    assert not waiter.done()
    broker.record("create_note-0", True)
    outcome = await asyncio.wait_for(waiter, timeout=1)
    assert outcome.kind is OutcomeKind.all_approved


@pytest.mark.asyncio
async def test_wait_timeout_leaves_batch_untouched() -> None:
    invocations = _batch("create_note")
    broker = ApprovalBroker(invocations, _needs_approval)
    with pytest.raises(ApprovalTimeoutError) as info:
        await broker.wait(timeout=0.01)
    assert info.value.context == {"pending": ["create_note-0"]}
    assert invocations[0].status is InvocationStatus.pending
    assert not broker.resolved
