from __future__ import annotations

"""Action registry.

The registry maps an action name to its implementation, tracks which actions
are enabled, and answers whether an action needs human approval under the
current ``ApprovalSettings``.

Execution always validates first: arguments that fail schema or semantic
validation never reach ``Action.execute``.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ValidationError

from ..errors import ActionAlreadyRegisteredError, ActionNotFoundError
from ..schemas.config import ActionSpec, ApprovalSettings
from ..schemas.domain import ActionCategory
from .base import Action, ActionContext, ActionResult, ValidationResult

logger = logging.getLogger(__name__)


def _format_validation_error(exc: ValidationError) -> List[str]:
    errors: List[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        errors.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return errors


class ActionRegistry:
    """
    In-memory mapping of action names to implementations.

    Notes:
        - ``register`` raises ``ActionAlreadyRegisteredError`` for a duplicate name.
        - Actions are enabled when registered.
        - ``get`` and ``set_enabled`` raise ``ActionNotFoundError`` for unknown names.
    """

    def __init__(self, approval: Optional[ApprovalSettings] = None) -> None:
        self._actions: Dict[str, Action] = {}
        self._disabled: Set[str] = set()
        self.approval = approval or ApprovalSettings()

    def register(self, action: Action) -> None:
        if action.name in self._actions:
            raise ActionAlreadyRegisteredError(action.name)
        self._actions[action.name] = action
        logger.debug(f"registered action {action.name} (category={action.category.value})")

    def unregister(self, name: str) -> None:
        if self._actions.pop(name, None) is None:
            raise ActionNotFoundError(name)
        self._disabled.discard(name)

    def get(self, name: str) -> Action:
        try:
            return self._actions[name]
        except KeyError:
            raise ActionNotFoundError(name) from None

    def has(self, name: str) -> bool:
        return name in self._actions

    def names(self) -> List[str]:
        return list(self._actions)

    def by_category(self, category: ActionCategory) -> List[Action]:
        return [a for a in self._actions.values() if a.category == category]

    def set_enabled(self, name: str, enabled: bool) -> None:
        if name not in self._actions:
            raise ActionNotFoundError(name)
        if enabled:
            self._disabled.discard(name)
        else:
            self._disabled.add(name)

    def is_enabled(self, name: str) -> bool:
        return name in self._actions and name not in self._disabled

    def is_approval_required(self, name: str) -> bool:
        """Configuration first, then the action's declared property.

        Unknown actions always require approval.
        """
        if not self.approval.approval_required:
            return False
        if name in self.approval.overrides:
            return bool(self.approval.overrides[name])
        action = self._actions.get(name)
        if action is None:
            return True
        return bool(action.requires_approval)

    def is_parallel_safe(self, name: str) -> bool:
        action = self._actions.get(name)
        return bool(action is not None and getattr(action, "parallel_safe", False))

    def specs(self) -> List[ActionSpec]:
        """Declarations of every enabled action, for the generation capability."""
        return [
            ActionSpec(
                name=a.name,
                description=a.description,
                parameters=a.args_model.model_json_schema(),
                requires_approval=self.is_approval_required(a.name),
            )
            for a in self._actions.values()
            if a.name not in self._disabled
        ]

    async def _parse(
        self, name: str, arguments: Dict[str, Any], ctx: ActionContext
    ) -> Tuple[Optional[BaseModel], ValidationResult]:
        action = self._actions.get(name)
        if action is None:
            return None, ValidationResult.fail(f"unknown action: {name}")
        try:
            parsed = action.args_model.model_validate(arguments or {})
        except ValidationError as exc:
            return None, ValidationResult(valid=False, errors=_format_validation_error(exc))
        return parsed, await action.validate(ctx, parsed)

    async def validate(self, name: str, arguments: Dict[str, Any], ctx: ActionContext) -> ValidationResult:
        _, result = await self._parse(name, arguments, ctx)
        return result

    async def execute(self, name: str, arguments: Dict[str, Any], ctx: ActionContext) -> ActionResult:
        """Validate and execute. Failures are returned, never raised."""
        if not self.is_enabled(name):
            reason = "disabled" if name in self._actions else "not found"
            return ActionResult(ok=False, error=f"action {reason}: {name}")

        parsed, validation = await self._parse(name, arguments, ctx)
        if not validation.valid or parsed is None:
            return ActionResult(
                ok=False,
                output={"errors": validation.errors, "warnings": validation.warnings},
                error="validation failed: " + "; ".join(validation.errors),
            )

        try:
            result = await self._actions[name].execute(ctx, parsed)
        except Exception as exc:
            logger.warning(f"action {name} raised: {exc}", exc_info=True)
            return ActionResult(ok=False, error=f"{type(exc).__name__}: {exc}")
        if validation.warnings:
            output = dict(result.output)
            output.setdefault("warnings", validation.warnings)
            return ActionResult(ok=result.ok, output=output, error=result.error, reversal=result.reversal)
        return result
