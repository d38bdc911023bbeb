from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Iterable, List, Optional

import httpx
import pytest

# Load dotenv files early so test fixtures can read settings via os.getenv
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    load_dotenv(TEST_ROOT / ".env", override=False)
except Exception:
    pass

from vaultmind_ai.agent_core.resilience import reset_circuit_breakers


class ScriptedGeneration:
    """Generation capability replaying scripted segments.

    Each call to ``stream`` consumes the next segment. A segment is a list of
    raw events; an exception in the list is raised at that point and an
    ``asyncio.Event`` blocks until set. A segment that is itself an exception
    is raised when the stream is opened.
    """

    def __init__(self, *segments: Any) -> None:
        self.segments: List[Any] = list(segments)
        self.calls: List[dict] = []

    async def stream(self, conversation, config, *, resume=None):
        self.calls.append({"conversation": list(conversation), "config": config, "resume": resume})
        segment = self.segments.pop(0) if self.segments else []
        if isinstance(segment, BaseException):
            raise segment
        for item in segment:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            yield item

    @staticmethod
    def text(chunk: str) -> dict:
        return {"type": "text_delta", "text": chunk}

    @staticmethod
    def call(call_id: Optional[str], name: str, arguments: Any = None) -> dict:
        raw: dict = {"name": name, "arguments": arguments if arguments is not None else {}}
        if call_id is not None:
            raw["id"] = call_id
        return raw

    @staticmethod
    def interrupted(*calls: dict, token: Optional[str] = "tok-1") -> dict:
        return {"type": "interrupted", "resumption_token": token, "interruptions": list(calls)}

    @staticmethod
    def completed(final_text: str = "") -> dict:
        return {"type": "completed", "final_text": final_text}


@pytest.fixture
def scripted():
    """Factory for ``ScriptedGeneration``."""
    return ScriptedGeneration


@pytest.fixture(autouse=True)
def _fresh_circuit_breakers():
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://test",
        "/",  # relative paths (ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)
