"""
Unit tests for the conversation, approval and history endpoints.

The assistant dependency is overridden with a service driven by a scripted
generation capability, so the full turn → suspend → decide → resume flow
runs over HTTP without a model.
"""

import pytest

from vaultmind_ai.agent_core import build_service

BASE = "/api/v1/conversations/c1"


def _create_note(scripted):
    return scripted.interrupted(scripted.call("c1", "create_note", {"path": "new.md", "content": "hello"}))


@pytest.mark.asyncio
async def test_turn_streams_events_and_records_messages(client, use_service, scripted, store, sse_events):
    use_service(build_service(generation=scripted([scripted.text("Hi "), scripted.text("there"), scripted.completed()]), store=store))

    response = await client.post(f"{BASE}/turns", json={"text": "hello"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = sse_events(response.text)
    assert [name for name, _ in events] == ["text_delta", "text_delta", "completed"]
    assert events[-1][1]["final_text"] == "Hi there"

    messages = (await client.get(f"{BASE}/messages")).json()
    assert [(m["role"], m["content"]) for m in messages] == [("user", "hello"), ("assistant", "Hi there")]
    assert messages[1]["status"] == "complete"


@pytest.mark.asyncio
async def test_turn_requires_text(client, use_service, scripted):
    use_service(build_service(generation=scripted()))
    response = await client.post(f"{BASE}/turns", json={"text": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_turn_while_streaming_is_conflict(client, use_service, scripted, store):
    service = use_service(build_service(generation=scripted([scripted.completed("a")]), store=store))
    await service.start_turn("c1", "first")

    response = await client.post(f"{BASE}/turns", json={"text": "second"})

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "session_busy"
    assert body["detail"] == "A response is already in progress for this conversation."


@pytest.mark.asyncio
async def test_approval_flow_executes_and_resumes(client, use_service, scripted, store, sse_events):
    use_service(build_service(generation=scripted([_create_note(scripted)], [scripted.completed("Created.")]), store=store))

    events = sse_events((await client.post(f"{BASE}/turns", json={"text": "make a note"})).text)
    assert [name for name, _ in events] == ["action_requested", "suspended"]
    assert not await store.exists("new.md")

    pending = (await client.get(f"{BASE}/approvals")).json()
    assert pending["session_id"]
    [action] = pending["pending"]
    assert (action["id"], action["name"]) == ("c1", "create_note")
    assert action["arguments"] == {"path": "new.md", "content": "hello"}

    response = await client.post(f"{BASE}/approvals", json={"decisions": {"c1": True}})
    assert response.status_code == 200
    resumed = sse_events(response.text)
    assert [name for name, _ in resumed] == ["action_executed", "text_delta", "completed"]
    assert resumed[0][1]["ok"] is True
    assert await store.read("new.md") == "hello"
    assert (await client.get(f"{BASE}/approvals")).json()["pending"] == []


@pytest.mark.asyncio
async def test_rejected_action_is_not_executed(client, use_service, scripted, store, sse_events):
    use_service(build_service(generation=scripted([_create_note(scripted)], [scripted.completed("Okay.")]), store=store))
    await client.post(f"{BASE}/turns", json={"text": "make a note"})

    response = await client.post(f"{BASE}/approvals", json={"decisions": {"c1": False}})

    assert [name for name, _ in sse_events(response.text)] == ["text_delta", "completed"]
    assert not await store.exists("new.md")


@pytest.mark.asyncio
async def test_submit_without_suspended_batch_is_conflict(client, use_service, scripted):
    use_service(build_service(generation=scripted()))

    response = await client.post(f"{BASE}/approvals", json={"decisions": {"x": True}})

    assert response.status_code == 409
    assert response.json()["detail"] == "There are no actions waiting for a decision."


@pytest.mark.asyncio
async def test_history_undo_and_redo(client, use_service, scripted, store):
    use_service(build_service(generation=scripted([_create_note(scripted)], [scripted.completed("Created.")]), store=store))
    await client.post(f"{BASE}/turns", json={"text": "make a note"})
    await client.post(f"{BASE}/approvals", json={"decisions": {"c1": True}})

    history = (await client.get(f"{BASE}/history")).json()
    assert [e["description"] for e in history["entries"]] == ["Create new.md"]
    assert (history["cursor"], history["can_undo"], history["can_redo"]) == (0, True, False)

    undone = (await client.post(f"{BASE}/undo")).json()
    assert undone["entry"]["description"] == "Create new.md"
    assert undone["entry"]["kind"] == "create"
    assert (undone["history"]["can_undo"], undone["history"]["can_redo"]) == (False, True)
    assert not await store.exists("new.md")

    redone = (await client.post(f"{BASE}/redo")).json()
    assert redone["entry"]["description"] == "Create new.md"
    assert await store.exists("new.md")


@pytest.mark.asyncio
async def test_undo_with_empty_history(client, use_service, scripted):
    use_service(build_service(generation=scripted()))
    response = await client.post(f"{BASE}/undo")
    assert response.status_code == 200
    assert response.json()["entry"] is None
    assert response.json()["history"]["entries"] == []


@pytest.mark.asyncio
async def test_cancel_suspended_session(client, use_service, scripted, store):
    use_service(build_service(generation=scripted([_create_note(scripted)]), store=store))
    await client.post(f"{BASE}/turns", json={"text": "make a note"})

    response = await client.post(f"{BASE}/cancel", json={"discard": True})

    assert response.status_code == 200
    assert response.json()["state"] == "cancelled"
    assert (await client.get(f"{BASE}/approvals")).json()["pending"] == []


@pytest.mark.asyncio
async def test_cancel_without_session(client, use_service, scripted):
    use_service(build_service(generation=scripted()))
    response = await client.post(f"{BASE}/cancel")
    assert response.status_code == 200
    assert response.json() == {"session_id": None, "state": None}
