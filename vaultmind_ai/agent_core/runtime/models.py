from __future__ import annotations

"""Coordinator dependency bundle and LangGraph state types.

- ``CoordinatorDeps`` collects what executing a batch needs.
- ``_ExecutionState`` is the state passed between LangGraph nodes while one
  approved batch executes. It only holds ids and plain result dicts; live
  objects for the batch are kept in ``_Execution``.
"""

import operator
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Required, TypedDict

from ..actions.base import ActionContext
from ..actions.registry import ActionRegistry
from ..ledger.ledger import ReversibleLedger
from ..schemas.domain import ApprovalOutcome
from .session import StreamingSession


@dataclass(frozen=True)
class CoordinatorDeps:
    """Dependency bundle for ``ResumableCoordinator``."""

    registry: ActionRegistry


@dataclass(frozen=True)
class _Execution:
    session: StreamingSession
    outcome: ApprovalOutcome
    ctx: ActionContext
    ledger: ReversibleLedger


class _ExecutionState(TypedDict):
    """Mutable LangGraph state for one batch execution.

    - ``session_id``: the suspended session being continued.
    - ``steps``: approved invocation ids grouped into execution steps; a step
      with several ids runs them concurrently.
    - ``idx``: index of the next step.
    - ``results``: executed-invocation payloads, accumulated across steps.
    """

    session_id: Required[str]
    steps: Required[List[List[str]]]
    idx: Required[int]
    results: Annotated[List[Dict[str, Any]], operator.add]
