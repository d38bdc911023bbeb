"""
Monitoring and Tracing Configuration Module.

This module provides integration with Pydantic Logfire for monitoring of the
assistant's orchestration layer:
- Streaming session lifecycle (started, suspended, completed, failed)
- Action executions and their outcomes
- Circuit breaker state transitions
- Error tracking with user-facing and internal messages

Every ``log_*`` helper is best-effort: a Logfire failure is reported at debug
level and never propagates to the caller.
"""

import logging
import os
from typing import Any, Optional

from fastapi import FastAPI

logger = logging.getLogger(__name__)

LOGFIRE_ENABLED = os.getenv("LOGFIRE_ENABLED", "false").lower() in ("true", "1", "yes")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_PROJECT_NAME = os.getenv("LOGFIRE_PROJECT_NAME", "vaultmind-ai")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "vaultmind-ai-server")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "0.1.0")

LOGFIRE_TRACE_PYDANTIC_AI = os.getenv("LOGFIRE_TRACE_PYDANTIC_AI", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_SQLALCHEMY = os.getenv("LOGFIRE_TRACE_SQLALCHEMY", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_FASTAPI = os.getenv("LOGFIRE_TRACE_FASTAPI", "true").lower() in ("true", "1", "yes")


def initialize_logfire(app: FastAPI | None = None) -> None:
    """
    Initialize Logfire and instrument pydantic-ai, SQLAlchemy and FastAPI.

    The initialization is conditional on ``LOGFIRE_ENABLED`` and requires
    ``LOGFIRE_TOKEN``.

    Args:
        app: FastAPI application to instrument (optional).
    """
    if not LOGFIRE_ENABLED:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return

    if not LOGFIRE_TOKEN:
        logger.warning("Logfire is enabled but LOGFIRE_TOKEN is not set. Monitoring will not work.")
        return

    try:
        import logfire

        logfire.configure(
            token=LOGFIRE_TOKEN,
            service_name=LOGFIRE_SERVICE_NAME,
            service_version=LOGFIRE_SERVICE_VERSION,
            environment=LOGFIRE_ENVIRONMENT,
        )

        if LOGFIRE_TRACE_PYDANTIC_AI:
            try:
                logfire.instrument_pydantic_ai()
                logger.info("Logfire: Pydantic AI instrumentation enabled")
            except Exception as e:
                logger.warning(f"Failed to instrument Pydantic AI: {e}")

        if LOGFIRE_TRACE_SQLALCHEMY:
            try:
                logfire.instrument_sqlalchemy()
                logger.info("Logfire: SQLAlchemy instrumentation enabled")
            except Exception as e:
                logger.warning(f"Failed to instrument SQLAlchemy: {e}")

        if LOGFIRE_TRACE_FASTAPI and app is not None:
            try:
                logfire.instrument_fastapi(app=app)
                logger.info("Logfire: FastAPI instrumentation enabled")
            except Exception as e:
                logger.warning(f"Failed to instrument FastAPI: {e}")

        logger.info(
            f"Logfire monitoring initialized: project={LOGFIRE_PROJECT_NAME}, "
            f"environment={LOGFIRE_ENVIRONMENT}, service={LOGFIRE_SERVICE_NAME}"
        )
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}", exc_info=True)


def log_session_started(session_id: str, conversation_id: str, resumed: bool = False) -> None:
    """Log the start (or resumption) of a streaming session."""
    try:
        import logfire

        logfire.info(
            "Streaming session started",
            session_id=session_id,
            conversation_id=conversation_id,
            resumed=resumed,
        )
    except Exception:
        logger.debug(f"Could not log session start to Logfire: session_id={session_id}")


def log_session_finished(session_id: str, state: str, pending: int = 0) -> None:
    """
    Log a session reaching a resting state.

    Args:
        session_id: The session identifier
        state: The state reached (suspended, completed, failed, cancelled)
        pending: Number of invocations awaiting a decision
    """
    try:
        import logfire

        logfire.info("Streaming session settled", session_id=session_id, state=state, pending=pending)
    except Exception:
        logger.debug(f"Could not log session finish to Logfire: session_id={session_id}")


def log_action_executed(action: str, invocation_id: str, ok: bool, duration_ms: float) -> None:
    """Log a single action execution."""
    try:
        import logfire

        logfire.info(
            "Action executed",
            action=action,
            invocation_id=invocation_id,
            ok=ok,
            duration_ms=duration_ms,
        )
    except Exception:
        logger.debug(f"Could not log action execution to Logfire: {action}")


def log_circuit_state_change(name: str, old_state: str, new_state: str) -> None:
    """Log a circuit breaker transition."""
    try:
        import logfire

        logfire.warn("Circuit state changed", circuit=name, old_state=old_state, new_state=new_state)
    except Exception:
        logger.debug(f"Could not log circuit state change to Logfire: {name} {old_state}->{new_state}")


def log_error(error_type: str, error_message: str, context: Optional[dict[str, Any]] = None) -> None:
    """
    Log an error with context for debugging.

    Args:
        error_type: Type or code of the error
        error_message: Internal (diagnostic) error message
        context: Additional context dictionary
    """
    try:
        import logfire

        logfire.error(
            "Error occurred",
            error_type=error_type,
            error_message=error_message,
            context=context or {},
        )
    except Exception:
        logger.debug(f"Could not log error to Logfire: {error_type}")
