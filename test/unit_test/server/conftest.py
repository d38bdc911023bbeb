import json
from typing import AsyncGenerator, Callable, List, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sse_starlette.sse import AppStatus

from vaultmind_ai.agent_core.actions import InMemoryDocumentStore
from vaultmind_ai.agent_core.service import AssistantService
from vaultmind_ai.server.main import app
from vaultmind_ai.server.services.assistant import get_assistant_service


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore({"seed.md": "seed content"})


@pytest.fixture
def use_service() -> Callable[[AssistantService], AssistantService]:
    """Route the API's assistant dependency to the given service."""

    def _use(service: AssistantService) -> AssistantService:
        app.dependency_overrides[get_assistant_service] = lambda: service
        return service

    return _use


@pytest_asyncio.fixture(name="client")
async def client_fixture(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app; the lifespan is not run, so no database is touched."""
    # the SSE exit event binds to the first loop it sees
    monkeypatch.setattr(AppStatus, "should_exit_event", None, raising=False)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def sse_events() -> Callable[[str], List[Tuple[str, dict]]]:
    """Parse an SSE body into ``(event, data)`` pairs."""

    def _parse(body: str) -> List[Tuple[str, dict]]:
        events: List[Tuple[str, dict]] = []
        name = "message"
        for line in body.splitlines():
            if line.startswith("event:"):
                name = line[len("event:") :].strip()
            elif line.startswith("data:"):
                events.append((name, json.loads(line[len("data:") :].strip())))
                name = "message"
        return events

    return _parse
