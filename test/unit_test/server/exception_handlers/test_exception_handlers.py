"""
Unit tests for server exception handlers.

Assistant errors are answered with their mapped status and user-facing
message; anything else falls through to the global 500 handler.
"""

from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from vaultmind_ai.agent_core.errors import (
    ActionNotFoundError,
    ApprovalTimeoutError,
    AssistantError,
    CircuitOpenError,
    RateLimitedError,
    SessionBusyError,
)
from vaultmind_ai.server.exception_handlers import setup_exception_handlers
from vaultmind_ai.server.exception_handlers.global_handler import global_exception_handler, status_for


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/rate-limited")
    async def rate_limited():
        raise RateLimitedError("429 from provider", retry_after=2.5)

    @app.get("/busy")
    async def busy():
        raise SessionBusyError("conversation c1 is streaming")

    @app.get("/circuit-open")
    async def circuit_open():
        raise CircuitOpenError("generation", 12.0)

    @app.get("/boom")
    async def boom():
        raise ValueError("unexpected")

    return app


async def _get(app: FastAPI, path: str):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path)


@pytest.mark.parametrize(
    "exc,status",
    [
        (SessionBusyError("busy"), 409),
        (ActionNotFoundError("nope"), 404),
        (ApprovalTimeoutError("timed out"), 408),
        (RateLimitedError("slow down", retry_after=1), 429),
        (AssistantError("generic"), 500),
    ],
)
def test_status_mapping(exc, status):
    assert status_for(exc) == status


@pytest.mark.asyncio
async def test_rate_limit_sets_retry_after(app):
    response = await _get(app, "/rate-limited")
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "3"
    body = response.json()
    assert body["code"] == "api_rate_limit"
    assert body["detail"] == "Rate limit reached. Retrying in 3 seconds."
    assert "error_id" in body


@pytest.mark.asyncio
async def test_open_circuit_is_service_unavailable(app):
    response = await _get(app, "/circuit-open")
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "12"


@pytest.mark.asyncio
async def test_busy_session_is_conflict_without_retry_after(app):
    response = await _get(app, "/busy")
    assert response.status_code == 409
    assert "Retry-After" not in response.headers
    assert response.json()["detail"] == "A response is already in progress for this conversation."


@pytest.mark.asyncio
async def test_unhandled_exception_is_generic_500(app):
    response = await _get(app, "/boom")
    assert response.status_code == 500
    body = response.json()
    assert body["detail"] == "Internal server error"
    assert body["error_type"] == "ValueError"


@pytest.mark.asyncio
async def test_global_handler_logs_error():
    request = Mock(spec=Request)
    request.method = "GET"
    request.url.path = "/api/v1/test"
    request.query_params = {}
    request.client = Mock()
    request.client.host = "127.0.0.1"

    with patch("vaultmind_ai.server.exception_handlers.global_handler.logger") as mock_logger:
        response = await global_exception_handler(request, RuntimeError("Test error"))

    assert response.status_code == 500
    mock_logger.error.assert_called_once()
    call_args = mock_logger.error.call_args
    assert "Unhandled exception" in call_args[0][0]
    assert call_args[1]["extra"]["error_type"] == "RuntimeError"
