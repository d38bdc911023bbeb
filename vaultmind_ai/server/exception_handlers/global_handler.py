"""
Exception Handlers for the FastAPI Application.

``AssistantError`` subclasses are mapped to HTTP statuses by error code and
answered with their user-facing message. Everything else is caught by the
global handler, logged with an error ID and answered with a generic 500.
"""

import math
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vaultmind_ai.agent_core.errors import AssistantError, ErrorCode
from vaultmind_ai.core.logging_config import get_logger
from vaultmind_ai.core.monitoring import log_error

logger = get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.api_rate_limit: 429,
    ErrorCode.api_key_invalid: 401,
    ErrorCode.api_quota_exceeded: 402,
    ErrorCode.session_busy: 409,
    ErrorCode.stream_state_invalid: 409,
    ErrorCode.invalid_transition: 409,
    ErrorCode.tool_validation_failed: 422,
    ErrorCode.tool_not_found: 404,
    ErrorCode.tool_already_registered: 409,
    ErrorCode.tool_approval_timeout: 408,
    ErrorCode.network_timeout: 503,
    ErrorCode.network_unavailable: 503,
}


def status_for(exc: AssistantError) -> int:
    return STATUS_BY_CODE.get(exc.code, 500)


async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
    """Answer an ``AssistantError`` with its user message and mapped status."""
    error_id = id(exc)
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.warning
    log(f"{exc.code.value} [{error_id}] in {request.method} {request.url.path}: {exc.message}")
    log_error(exc.code.value, exc.message, {"path": request.url.path, "error_id": error_id})

    headers = {}
    if exc.retry_after is not None and status in (429, 503):
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
    return JSONResponse(
        status_code=status,
        content={"code": exc.code.value, "detail": exc.user_message, "error_id": error_id},
        headers=headers,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    Returns a JSON response with an error ID clients can use to reference the
    error when reporting issues.
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI application."""
    app.add_exception_handler(AssistantError, assistant_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
