"""Error taxonomy for the orchestration core.

Every failure that crosses a component boundary is an ``AssistantError``. It
carries two messages:

- ``message``: internal diagnostics (exception text, provider codes, ids).
- ``user_message``: an actionable, human-readable explanation that never
  contains stack traces or internal identifiers.

and two classification flags:

- ``retryable``: the resilience wrapper may retry the operation.
- ``recoverable``: the conversation can continue after the error.

Foreign exceptions (HTTP client, model provider) are mapped into this taxonomy
exactly once, at the boundary where they are caught, via ``classify_exception``.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic_ai.exceptions import ModelHTTPError


class ErrorCode(str, Enum):
    network_timeout = "network_timeout"
    network_unavailable = "network_unavailable"
    api_rate_limit = "api_rate_limit"
    api_key_invalid = "api_key_invalid"
    api_quota_exceeded = "api_quota_exceeded"
    tool_execution_failed = "tool_execution_failed"
    tool_not_found = "tool_not_found"
    tool_already_registered = "tool_already_registered"
    tool_validation_failed = "tool_validation_failed"
    tool_approval_timeout = "tool_approval_timeout"
    stream_state_invalid = "stream_state_invalid"
    stream_interrupted = "stream_interrupted"
    stream_resume_failed = "stream_resume_failed"
    session_busy = "session_busy"
    invalid_transition = "invalid_transition"
    ledger_effect_failed = "ledger_effect_failed"


class AssistantError(Exception):
    """Base error carrying both an internal and a user-facing message."""

    code: ErrorCode = ErrorCode.stream_interrupted
    default_user_message: str = "Something went wrong. Please try again."
    recoverable: bool = True
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        user_message: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        retry_after: Optional[float] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or self.default_user_message
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause
        self.retry_after = retry_after
        self.timestamp = datetime.now(timezone.utc)
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable
        if retryable is not None:
            self.retryable = retryable
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "retry_after": self.retry_after,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause is not None else None,
        }


class NetworkTransientError(AssistantError):
    code = ErrorCode.network_unavailable
    default_user_message = "The assistant service is temporarily unreachable. Please try again in a moment."
    retryable = True


class CircuitOpenError(NetworkTransientError):
    """Raised without calling the dependency while its circuit is open."""

    default_user_message = "The assistant service is temporarily unavailable. Retrying shortly."

    def __init__(self, name: str, retry_after: float) -> None:
        super().__init__(
            f"circuit '{name}' is open; retry in {retry_after:.2f}s",
            context={"circuit": name},
            retry_after=retry_after,
        )


class RateLimitedError(AssistantError):
    code = ErrorCode.api_rate_limit
    retryable = True

    def __init__(self, message: str, *, retry_after: float, **kwargs: Any) -> None:
        seconds = max(1, math.ceil(retry_after))
        kwargs.setdefault("user_message", f"Rate limit reached. Retrying in {seconds} seconds.")
        super().__init__(message, retry_after=retry_after, **kwargs)


class CredentialInvalidError(AssistantError):
    code = ErrorCode.api_key_invalid
    default_user_message = "The API key was rejected. Check the key in your settings and try again."
    recoverable = False


class QuotaExceededError(AssistantError):
    code = ErrorCode.api_quota_exceeded
    default_user_message = "Your API quota is exhausted. Check your plan or billing details."
    recoverable = False


class ActionNotFoundError(AssistantError):
    code = ErrorCode.tool_not_found

    def __init__(self, name: str) -> None:
        super().__init__(f"action not found: {name}", user_message=f"Unknown action '{name}'.", context={"name": name})
        self.name = name


class ActionAlreadyRegisteredError(AssistantError):
    code = ErrorCode.tool_already_registered

    def __init__(self, name: str) -> None:
        super().__init__(
            f"action already registered: {name}",
            user_message=f"An action named '{name}' is already registered.",
            context={"name": name},
        )
        self.name = name


class ActionValidationFailedError(AssistantError):
    code = ErrorCode.tool_validation_failed
    default_user_message = "The action's arguments are invalid."

    def __init__(self, name: str, errors: list[str], warnings: Optional[list[str]] = None) -> None:
        super().__init__(
            f"validation failed for {name}: {'; '.join(errors)}",
            user_message=f"Invalid arguments for '{name}': {'; '.join(errors)}",
            context={"name": name, "errors": list(errors)},
        )
        self.errors = list(errors)
        self.warnings = list(warnings or [])


class ActionExecutionFailedError(AssistantError):
    code = ErrorCode.tool_execution_failed
    default_user_message = "The action could not be completed."


class ApprovalTimeoutError(AssistantError):
    code = ErrorCode.tool_approval_timeout
    default_user_message = "No decision was made in time. The requested actions are still waiting."
    retryable = True


class StreamStateInvalidError(AssistantError):
    code = ErrorCode.stream_state_invalid
    default_user_message = "This conversation can no longer be continued. Please start a new message."
    recoverable = False


class StreamResumeFailedError(AssistantError):
    code = ErrorCode.stream_resume_failed
    default_user_message = "The response could not be resumed. Please send your message again."
    recoverable = False


class RetryExhaustedError(AssistantError):
    """Raised after the last attempt; never retried again by outer wrappers."""

    code = ErrorCode.network_unavailable
    default_user_message = "The assistant service did not respond after several attempts. Please try again later."
    retryable = False

    def __init__(self, attempts: int, cause: BaseException) -> None:
        user_message = cause.user_message if isinstance(cause, AssistantError) else None
        code = cause.code if isinstance(cause, AssistantError) else None
        super().__init__(
            f"Operation failed after {attempts} attempts: {cause}",
            user_message=user_message,
            context={"attempts": attempts},
            cause=cause,
            code=code,
            retryable=False,
        )
        self.attempts = attempts


class SessionBusyError(AssistantError):
    code = ErrorCode.session_busy
    default_user_message = "A response is already in progress for this conversation."


class InvalidTransitionError(AssistantError):
    code = ErrorCode.invalid_transition

    def __init__(self, invocation_id: str, current: str, target: str) -> None:
        super().__init__(
            f"invocation {invocation_id}: illegal transition {current} -> {target}",
            context={"invocation_id": invocation_id, "from": current, "to": target},
        )


class LedgerEffectError(AssistantError):
    code = ErrorCode.ledger_effect_failed
    default_user_message = "The change could not be reverted or reapplied."


def _retry_after_from_body(body: Any) -> Optional[float]:
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except ValueError:
            return None
    if not isinstance(body, dict):
        return None
    for key in ("retry_after", "retry-after", "retryAfter"):
        value = body.get(key)
        if value is None and isinstance(body.get("error"), dict):
            value = body["error"].get(key)
        if value is not None:
            try:
                return float(value)
            except (TypeError, ValueError):
                return None
    return None


def classify_exception(exc: BaseException) -> AssistantError:
    """Map a foreign exception into the error taxonomy.

    ``AssistantError`` instances are returned unchanged.
    """
    if isinstance(exc, AssistantError):
        return exc

    if isinstance(exc, httpx.TimeoutException):
        return NetworkTransientError(
            f"request timed out: {exc}",
            code=ErrorCode.network_timeout,
            user_message="The request timed out. Please try again.",
            cause=exc,
        )
    if isinstance(exc, httpx.HTTPStatusError):
        return _classify_status(exc.response.status_code, exc, body=exc.response.headers.get("retry-after"))
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return NetworkTransientError(f"network error: {exc}", cause=exc)
    if isinstance(exc, TimeoutError):
        return NetworkTransientError(f"operation timed out: {exc}", code=ErrorCode.network_timeout, cause=exc)
    if isinstance(exc, ModelHTTPError):
        return _classify_status(exc.status_code, exc, body=exc.body)

    return AssistantError(f"{type(exc).__name__}: {exc}", cause=exc, retryable=False)


def _classify_status(status: int, exc: BaseException, *, body: Any = None) -> AssistantError:
    context = {"status_code": status}
    if status in (401, 403):
        return CredentialInvalidError(f"provider rejected credentials (HTTP {status})", context=context, cause=exc)
    if status == 429:
        retry_after = body if isinstance(body, (int, float)) else _retry_after_from_body(body)
        if retry_after is None and isinstance(body, str):
            try:
                retry_after = float(body)
            except ValueError:
                retry_after = None
        return RateLimitedError(
            "provider rate limit (HTTP 429)",
            retry_after=retry_after if retry_after is not None else 1.0,
            context=context,
            cause=exc,
        )
    if status == 402:
        return QuotaExceededError(f"provider quota exhausted (HTTP {status})", context=context, cause=exc)
    if status >= 500:
        return NetworkTransientError(f"provider unavailable (HTTP {status})", context=context, cause=exc)
    return AssistantError(f"provider error (HTTP {status}): {exc}", context=context, cause=exc, retryable=False)
