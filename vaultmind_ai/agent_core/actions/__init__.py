"""Actions the generation capability may request, and their registry."""

from .base import Action, ActionContext, ActionResult, ValidationResult
from .registry import ActionRegistry
from .store import DocumentStore, InMemoryDocumentStore, normalize_path
from .vault import default_actions

__all__ = [
    "Action",
    "ActionContext",
    "ActionRegistry",
    "ActionResult",
    "DocumentStore",
    "InMemoryDocumentStore",
    "ValidationResult",
    "default_actions",
    "normalize_path",
]
