from __future__ import annotations

"""Normalization of raw generation events.

Generation backends report the same things in different shapes: a tool call
may arrive as ``{"type": "tool_call", "id": ..., "name": ..., "arguments": "{...}"}``,
as an SDK object with ``raw_item.call_id``, or nested in an interruption's
list of pending requests. ``StreamNormalizer`` maps every shape onto the
canonical events in ``schemas.events``.

Field lookup
------------

Fields are looked up along fixed paths, first match wins. Each path segment
is tried on dict keys and object attributes, in snake_case and camelCase.

Invocation identity
-------------------

``InvocationIdResolver`` uses an explicit id when the raw request carries
one. Otherwise it derives ``"<name>-<n>"`` from a per-session counter and
caches it by the raw object's identity, so the same raw request resolves to
the same id every time it is seen.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..schemas.events import ActionRequested, CanonicalEvent, Completed, Failed, Interrupted, TextDelta

logger = logging.getLogger(__name__)

ID_PATHS: Tuple[str, ...] = (
    "id",
    "raw_item.id",
    "raw_item.call_id",
    "raw_item.provider_data.id",
    "item.id",
    "call_id",
    "tool_call_id",
)
NAME_PATHS: Tuple[str, ...] = ("raw_item.name", "item.name", "name", "tool", "tool_name")
ARGUMENT_PATHS: Tuple[str, ...] = ("raw_item.arguments", "item.arguments", "arguments", "args")
TOKEN_PATHS: Tuple[str, ...] = ("resumption_token", "token", "state")
TEXT_PATHS: Tuple[str, ...] = ("text", "delta", "content")
FINAL_TEXT_PATHS: Tuple[str, ...] = ("final_text", "final_output", "output", "text")
REQUEST_LIST_PATHS: Tuple[str, ...] = ("interruptions", "requests", "tool_calls")

_TEXT_TYPES = {"text_delta", "text", "delta", "output_text_delta"}
_REQUEST_TYPES = {"tool_call", "action_request", "action_requested", "function_call", "tool_call_item", "tool_approval_item"}
_INTERRUPT_TYPES = {"interrupted", "interruption", "paused"}
_COMPLETE_TYPES = {"completed", "complete", "done", "final"}
_FAILURE_TYPES = {"failed", "error"}


def _camel(segment: str) -> str:
    head, *rest = segment.split("_")
    return head + "".join(p.title() for p in rest)


def _lookup(obj: Any, segment: str) -> Any:
    for key in (segment, _camel(segment)):
        if isinstance(obj, dict):
            if key in obj:
                return obj[key]
        elif hasattr(obj, key):
            return getattr(obj, key)
    return None


def get_path(obj: Any, path: str) -> Any:
    current = obj
    for segment in path.split("."):
        if current is None:
            return None
        current = _lookup(current, segment)
    return current


def first_of(obj: Any, paths: Sequence[str]) -> Any:
    for path in paths:
        value = get_path(obj, path)
        if value is not None and value != "":
            return value
    return None


def parse_arguments(value: Any) -> Dict[str, Any]:
    """Decode tool-call arguments; undecodable text is kept under ``"raw"``."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, (str, bytes)):
        text = value.decode() if isinstance(value, bytes) else value
        if not text.strip():
            return {}
        try:
            decoded = json.loads(text)
        except ValueError:
            return {"raw": text}
        return decoded if isinstance(decoded, dict) else {"raw": text}
    if hasattr(value, "model_dump"):
        return dict(value.model_dump())
    return {"raw": str(value)}


class InvocationIdResolver:
    def __init__(self) -> None:
        self._counter = 0
        # id(raw) -> (raw, resolved id); the raw object is held so its id() is not reused
        self._cache: Dict[int, Tuple[Any, str]] = {}

    def resolve(self, raw: Any, name: str) -> str:
        explicit = first_of(raw, ID_PATHS)
        if explicit is not None:
            return str(explicit)
        cached = self._cache.get(id(raw))
        if cached is not None and cached[0] is raw:
            return cached[1]
        self._counter += 1
        generated = f"{name}-{self._counter}"
        self._cache[id(raw)] = (raw, generated)
        return generated


class StreamNormalizer:
    """Per-session translator from raw events to canonical events."""

    def __init__(self, resolver: Optional[InvocationIdResolver] = None) -> None:
        self.resolver = resolver or InvocationIdResolver()

    def normalize(self, raw: Any) -> List[CanonicalEvent]:
        if isinstance(raw, (TextDelta, ActionRequested, Interrupted, Completed, Failed)):
            return [raw]
        if isinstance(raw, str):
            return [TextDelta(text=raw)] if raw else []

        kind = str(first_of(raw, ("type", "kind", "event")) or "").lower()
        if kind in _TEXT_TYPES:
            text = first_of(raw, TEXT_PATHS)
            return [TextDelta(text=str(text))] if text else []
        if kind in _REQUEST_TYPES:
            return [self.request(raw)]
        if kind in _INTERRUPT_TYPES:
            return self._interruption(raw)
        if kind in _COMPLETE_TYPES:
            requests = self._requests(raw)
            final = first_of(raw, FINAL_TEXT_PATHS)
            token = first_of(raw, TOKEN_PATHS)
            return [
                *requests,
                Completed(
                    final_text=final if isinstance(final, str) else "",
                    resumption_token=str(token) if token is not None else None,
                ),
            ]
        if kind in _FAILURE_TYPES:
            message = first_of(raw, ("message", "error.message", "error", "detail"))
            return [
                Failed(
                    code=str(first_of(raw, ("code", "error.code")) or "stream_interrupted"),
                    message=str(message or "generation failed"),
                    user_message="The response was interrupted. Please try again.",
                    retryable=bool(first_of(raw, ("retryable",)) or False),
                )
            ]

        logger.debug(f"ignoring unrecognized raw event: {type(raw).__name__} kind={kind!r}")
        return []

    def request(self, raw: Any) -> ActionRequested:
        name = str(first_of(raw, NAME_PATHS) or "unknown")
        return ActionRequested(
            invocation_id=self.resolver.resolve(raw, name),
            name=name,
            arguments=parse_arguments(first_of(raw, ARGUMENT_PATHS)),
        )

    def _requests(self, raw: Any) -> List[ActionRequested]:
        items = first_of(raw, REQUEST_LIST_PATHS) or []
        return [self.request(item) for item in items]

    def _interruption(self, raw: Any) -> List[CanonicalEvent]:
        token = first_of(raw, TOKEN_PATHS)
        return [*self._requests(raw), Interrupted(resumption_token=str(token) if token is not None else None)]
