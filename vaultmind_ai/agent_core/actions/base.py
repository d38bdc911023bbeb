from __future__ import annotations

"""Action protocol and execution data models.

An action is a named, schema-described operation the generation capability
may request (create a note, move a file, search the vault, ...).

The coordinator resolves an ``ActionInvocation`` through the
``ActionRegistry`` and executes the implementation with an ``ActionContext``.

Actions should:

- describe their arguments with a pydantic ``args_model`` (used both for
  validation and for the JSON schema declared to the model),
- put semantic checks that need the document store in ``validate``,
- return structured outputs in ``ActionResult.output`` and, for reversible
  side effects, a ``Reversal`` so the change can be undone,
- never make approval decisions themselves (approval is enforced before
  execution).
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Protocol, Type

from pydantic import BaseModel

from ..ledger.reversals import Reversal
from ..schemas.domain import ActionCategory
from .store import DocumentStore


@dataclass(frozen=True)
class ActionContext:
    """Execution context passed to action implementations.

    Attributes
    ----------
    store:
        The document store the action operates on.
    conversation_id:
        The conversation the invocation belongs to.
    invocation_id:
        Identifier of the invocation being executed, when known.
    """

    store: DocumentStore
    conversation_id: str = ""
    invocation_id: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, warnings: Optional[List[str]] = None) -> "ValidationResult":
        return cls(valid=True, warnings=list(warnings or []))

    @classmethod
    def fail(cls, *errors: str) -> "ValidationResult":
        return cls(valid=False, errors=list(errors))


@dataclass(frozen=True)
class ActionResult:
    """Structured action execution result."""

    ok: bool
    output: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    reversal: Optional[Reversal] = None


class Action(Protocol):
    """Protocol for action implementations."""

    name: str
    description: str
    category: ActionCategory
    requires_approval: bool
    parallel_safe: bool
    args_model: ClassVar[Type[BaseModel]]

    async def validate(self, ctx: ActionContext, args: BaseModel) -> ValidationResult: ...

    async def execute(self, ctx: ActionContext, args: BaseModel) -> ActionResult: ...
