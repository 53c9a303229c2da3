"""Unit tests for ingestion, replay queries and the agent directory."""

from __future__ import annotations

import pytest

from mohano.broker.errors import InvalidPayloadError
from mohano.broker.managers.events import decode_event_body, ingest_event, list_agents, query_events
from mohano.broker.models.enums import Transport
from mohano.broker.models.events import EventFilters
from mohano.broker.registry import WorkspaceRegistry
from mohano.broker.subscribers import Subscriber


def _seqs(events) -> list[int]:
    return [e.sequence for e in events]


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


def test_sequences_start_at_one_and_increase(registry: WorkspaceRegistry) -> None:
    ws = registry.default
    stored = [ingest_event(ws, {"n": i}) for i in range(4)]

    assert _seqs(stored) == [1, 2, 3, 4]
    assert _seqs(query_events(ws)) == [1, 2, 3, 4]
    assert [e.payload["n"] for e in query_events(ws)] == [0, 1, 2, 3]


def test_overflow_keeps_most_recent(registry: WorkspaceRegistry) -> None:
    """Registry capacity is 5: seven ingestions keep sequences 3..7."""
    ws = registry.default
    for i in range(7):
        ingest_event(ws, {"n": i})

    assert _seqs(query_events(ws)) == [3, 4, 5, 6, 7]
    assert ws.sequence == 7


def test_workspace_sequences_are_independent(registry: WorkspaceRegistry) -> None:
    _, ws_a = registry.create()
    _, ws_b = registry.create()

    ingest_event(ws_a, {})
    ingest_event(ws_a, {})
    b = ingest_event(ws_b, {})

    assert b.sequence == 1
    assert ws_a.sequence == 2
    assert len(registry.default.events) == 0


def test_timestamp_assigned_when_missing(registry: WorkspaceRegistry) -> None:
    event = ingest_event(registry.default, {"hook_event_name": "PreToolUse"})
    assert isinstance(event.timestamp, str)
    assert event.timestamp.endswith("Z")


@pytest.mark.parametrize("timestamp", ["2025-01-01T00:00:00Z", 1735689600])
def test_producer_timestamp_kept(registry: WorkspaceRegistry, timestamp: str | int) -> None:
    event = ingest_event(registry.default, {"timestamp": timestamp})
    assert event.timestamp == timestamp


@pytest.mark.parametrize("timestamp", ["", None, {"not": "scalar"}])
def test_unusable_timestamp_replaced(registry: WorkspaceRegistry, timestamp: object) -> None:
    event = ingest_event(registry.default, {"timestamp": timestamp})
    assert isinstance(event.timestamp, str)
    assert event.timestamp


def test_wire_form_keeps_payload(registry: WorkspaceRegistry) -> None:
    raw = {"session_id": "s1", "tool_input": {"file_path": "/a"}, "custom": [1, 2]}
    event = ingest_event(registry.default, raw)

    wire = event.to_wire()
    assert wire["tool_input"] == {"file_path": "/a"}
    assert wire["custom"] == [1, 2]
    assert wire["sequence"] == 1
    assert wire["timestamp"] == event.timestamp
    assert "timestamp" not in raw  # producer's object is not mutated


def test_indexed_fields_are_normalised(registry: WorkspaceRegistry) -> None:
    event = ingest_event(registry.default, {"session_id": 42, "tool_name": "", "agent_type": ["x"]})
    assert event.session_id == "42"
    assert event.tool_name is None
    assert event.agent_type is None


@pytest.mark.parametrize("raw", [[1, 2], "text", 3, None])
def test_non_object_rejected_without_state_change(registry: WorkspaceRegistry, raw: object) -> None:
    ws = registry.default
    ingest_event(ws, {"n": 1})

    with pytest.raises(InvalidPayloadError):
        ingest_event(ws, raw)

    assert ws.sequence == 1
    assert len(ws.events) == 1


_DEEP_BODY = b'{"a": ' + b"[" * 100_000 + b"]" * 100_000 + b"}"


@pytest.mark.parametrize(
    "body",
    [
        b"{not json",
        b"",
        b"[1, 2]",
        b'"str"',
        b"\xff\xfe",
        b'{"x": NaN}',
        b'{"x": Infinity}',
        b'{"x": [-Infinity]}',
        _DEEP_BODY,
    ],
    ids=["garbage", "empty", "array", "string", "not-utf8", "nan", "infinity", "neg-infinity", "too-deep"],
)
def test_decode_event_body_rejects(body: bytes) -> None:
    with pytest.raises(InvalidPayloadError):
        decode_event_body(body)


def test_decode_event_body_accepts_object() -> None:
    assert decode_event_body(b'{"a": 1}') == {"a": 1}


@pytest.mark.parametrize("value", [float("nan"), float("inf"), [float("-inf")]])
def test_non_finite_numbers_rejected_without_state_change(registry: WorkspaceRegistry, value: object) -> None:
    ws = registry.default
    sub = Subscriber(Transport.WEBSOCKET)
    registry.attach(ws, sub)

    with pytest.raises(InvalidPayloadError):
        ingest_event(ws, {"x": value})

    assert ws.sequence == 0
    assert len(ws.events) == 0
    assert sub.pending == 0


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.fixture
def tool_events(registry: WorkspaceRegistry):
    """Sequences 1..5: Read for 1, 3; Write for 2, 4, 5."""
    ws = registry.default
    for tool in ("Read", "Write", "Read", "Write", "Write"):
        ingest_event(ws, {"tool_name": tool, "session_id": "s1", "hook_event_name": "PostToolUse"})
    return ws


def test_query_tool_name_since_seq(tool_events) -> None:
    result = query_events(tool_events, EventFilters(tool_name="Write", since_seq=2))
    assert _seqs(result) == [4, 5]


def test_query_since_seq_is_strict(tool_events) -> None:
    assert _seqs(query_events(tool_events, EventFilters(since_seq=3))) == [4, 5]
    assert _seqs(query_events(tool_events, EventFilters(since_seq=0))) == [1, 2, 3, 4, 5]
    assert query_events(tool_events, EventFilters(since_seq=5)) == []


def test_query_limit_keeps_latest(tool_events) -> None:
    assert _seqs(query_events(tool_events, EventFilters(limit=2))) == [4, 5]
    assert _seqs(query_events(tool_events, EventFilters(tool_name="Read", limit=1))) == [3]
    assert _seqs(query_events(tool_events, EventFilters(limit=100))) == [1, 2, 3, 4, 5]


@pytest.mark.parametrize("limit", [0, -3])
def test_query_non_positive_limit_is_no_cap(tool_events, limit: int) -> None:
    assert len(query_events(tool_events, EventFilters(limit=limit))) == 5


def test_query_filters_are_conjunctive(registry: WorkspaceRegistry) -> None:
    ws = registry.default
    ingest_event(ws, {"session_id": "s1", "agent_type": "planner", "hook_event_name": "SubagentStart"})
    ingest_event(ws, {"session_id": "s1", "agent_type": "coder", "hook_event_name": "SubagentStart"})
    ingest_event(ws, {"session_id": "s2", "agent_type": "coder", "hook_event_name": "SubagentStart"})
    ingest_event(ws, {"session_id": "s2", "agent_type": "coder", "hook_event_name": "SubagentStop"})

    result = query_events(ws, EventFilters(session_id="s2", agent_type="coder", hook_event_name="SubagentStart"))
    assert _seqs(result) == [3]


def test_query_no_match_is_empty(tool_events) -> None:
    assert query_events(tool_events, EventFilters(session_id="nope")) == []


def test_query_does_not_mutate(tool_events) -> None:
    query_events(tool_events, EventFilters(tool_name="Write", limit=1))
    assert tool_events.sequence == 5
    assert len(tool_events.events) == 5


# ---------------------------------------------------------------------------
# Agent directory
# ---------------------------------------------------------------------------


def test_agent_directory_tracks_latest(registry: WorkspaceRegistry) -> None:
    ws = registry.default
    ingest_event(ws, {"session_id": "s1", "agent_id": "a1", "agent_type": "coder", "timestamp": "t1"})
    ingest_event(ws, {"session_id": "s1", "agent_id": "a1", "agent_type": "coder", "team_name": "red", "timestamp": "t2"})
    ingest_event(ws, {"session_id": "s1", "agent_name": "reviewer", "timestamp": "t3"})
    ingest_event(ws, {"session_id": "s2", "timestamp": "t4"})

    agents = list_agents(ws)
    assert len(agents) == 3

    a1 = agents[0]
    assert (a1.agent_id, a1.team_name) == ("a1", "red")
    # last_seen is the broker's clock, not the producer's timestamp
    assert a1.last_seen.endswith("Z")
    assert a1.last_seen != "t2"

    reviewer = agents[1]
    assert reviewer.agent_name == "reviewer"
    assert reviewer.agent_id == "s1"  # falls back to the session id

    main = agents[2]
    assert (main.session_id, main.agent_id) == ("s2", "s2")
    assert ws.agents.keys() == {"s1:a1", "s1:reviewer", "s2:default"}


def test_agent_directories_are_per_workspace(registry: WorkspaceRegistry) -> None:
    _, ws = registry.create()
    ingest_event(ws, {"session_id": "s1", "agent_id": "a1"})
    assert list_agents(registry.default) == []
    assert len(list_agents(ws)) == 1
