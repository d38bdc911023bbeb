from __future__ import annotations

from types import SimpleNamespace

import pytest

from vaultmind_ai.agent_core.runtime import InvocationIdResolver, StreamNormalizer, parse_arguments
from vaultmind_ai.agent_core.schemas.events import ActionRequested, Completed, Failed, Interrupted, TextDelta


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, {}),
        ("", {}),
        ('{"path": "a.md"}', {"path": "a.md"}),
        (b'{"n": 1}', {"n": 1}),
        ({"k": "v"}, {"k": "v"}),
        ("not json", {"raw": "not json"}),
        ("[1, 2]", {"raw": "[1, 2]"}),
    ],
)
def test_parse_arguments(value, expected) -> None:
    assert parse_arguments(value) == expected


def test_resolver_prefers_explicit_ids_in_any_shape() -> None:
    resolver = InvocationIdResolver()
    assert resolver.resolve({"id": "a"}, "x") == "a"
    assert resolver.resolve({"toolCallId": "b"}, "x") == "b"
    assert resolver.resolve(SimpleNamespace(raw_item=SimpleNamespace(call_id="c")), "x") == "c"
    assert resolver.resolve({"raw_item": {"provider_data": {"id": "d"}}}, "x") == "d"


def test_resolver_generates_stable_ids_per_raw_object() -> None:
    resolver = InvocationIdResolver()
    first = {"name": "read_note"}
    second = {"name": "read_note"}
    assert resolver.resolve(first, "read_note") == "read_note-1"
    assert resolver.resolve(first, "read_note") == "read_note-1"
    assert resolver.resolve(second, "read_note") == "read_note-2"


class TestStreamNormalizer:
    def test_plain_strings_and_text_events(self) -> None:
        norm = StreamNormalizer()
        assert norm.normalize("hi") == [TextDelta(text="hi")]
        assert norm.normalize("") == []
        assert norm.normalize({"type": "output_text_delta", "delta": "yo"}) == [TextDelta(text="yo")]
        assert norm.normalize({"type": "text_delta", "text": ""}) == []

    def test_canonical_events_pass_through(self) -> None:
        event = Interrupted(resumption_token="t")
        assert StreamNormalizer().normalize(event) == [event]

    def test_tool_call_with_json_arguments(self) -> None:
        [event] = StreamNormalizer().normalize(
            {"type": "tool_call", "id": "c1", "name": "create_note", "arguments": '{"path": "a.md"}'}
        )
        assert event == ActionRequested(invocation_id="c1", name="create_note", arguments={"path": "a.md"})

    def test_sdk_object_tool_call(self) -> None:
        raw = SimpleNamespace(type="tool_call_item", raw_item=SimpleNamespace(call_id="x9", name="read_note", arguments="{}"))
        [event] = StreamNormalizer().normalize(raw)
        assert (event.invocation_id, event.name, event.arguments) == ("x9", "read_note", {})

    def test_interruption_lists_requests_then_pauses(self) -> None:
        raw = {
            "type": "interruption",
            "state": "tok",
            "interruptions": [{"name": "create_note", "args": {"path": "a.md"}}, {"tool": "delete_file"}],
        }
        events = StreamNormalizer().normalize(raw)
        assert [type(e) for e in events] == [ActionRequested, ActionRequested, Interrupted]
        assert events[0].invocation_id == "create_note-1"
        assert events[1].invocation_id == "delete_file-2"
        assert events[2].resumption_token == "tok"

    def test_completed_with_final_output(self) -> None:
        [event] = StreamNormalizer().normalize({"type": "done", "final_output": "bye"})
        assert event == Completed(final_text="bye")

    def test_completed_with_pending_requests(self) -> None:
        events = StreamNormalizer().normalize({"type": "completed", "tool_calls": [{"id": "c", "name": "n"}], "token": "t"})
        assert isinstance(events[0], ActionRequested)
        assert events[1] == Completed(final_text="", resumption_token="t")

    def test_failure(self) -> None:
        [event] = StreamNormalizer().normalize({"type": "error", "error": {"message": "boom", "code": "x"}, "retryable": True})
        assert isinstance(event, Failed)
        assert event.message == "boom"
        assert event.code == "x"
        assert event.retryable is True

    def test_unknown_events_are_dropped(self) -> None:
        assert StreamNormalizer().normalize({"type": "heartbeat"}) == []
        assert StreamNormalizer().normalize(42) == []
