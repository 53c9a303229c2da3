"""Ingestion, replay queries and the agent directory.

``ingest_event`` contains no ``await``: sequencing, storage, directory update
and fan-out happen in one uninterrupted step of the event loop, so concurrent
ingestions into a workspace can never share a sequence number or observe a
half-applied event.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from mohano.broker.errors import InvalidPayloadError
from mohano.broker.models.events import AgentEntry, EventFilters, StoredEvent
from mohano.broker.registry import Workspace
from mohano.broker.subscribers import publish


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _reject_constant(name: str) -> Any:
    msg = f"Invalid JSON: {name} is not a JSON value"
    raise InvalidPayloadError(msg)


def decode_event_body(body: bytes) -> dict[str, Any]:
    """Parse a raw request body into an event object.

    Raises ``InvalidPayloadError`` for non-JSON bodies (including ``NaN`` and
    ``Infinity`` literals and nesting too deep to decode) and for JSON values
    that are not objects.
    """
    try:
        raw = json.loads(body, parse_constant=_reject_constant)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        msg = f"Invalid JSON: {exc}"
        raise InvalidPayloadError(msg) from None
    if not isinstance(raw, dict):
        msg = f"Event must be a JSON object, got {type(raw).__name__}"
        raise InvalidPayloadError(msg)
    return raw


def _ensure_encodable(raw: dict[str, Any]) -> None:
    # Subscribers receive strict JSON; non-finite floats have no encoding.
    try:
        json.dumps(raw, allow_nan=False, default=str)
    except (ValueError, RecursionError) as exc:
        msg = f"Event is not representable as JSON: {exc}"
        raise InvalidPayloadError(msg) from None


def ingest_event(workspace: Workspace, raw: Any) -> StoredEvent:
    """Sequence, store, index and broadcast one event."""
    if not isinstance(raw, dict):
        msg = f"Event must be a JSON object, got {type(raw).__name__}"
        raise InvalidPayloadError(msg)
    _ensure_encodable(raw)

    timestamp = raw.get("timestamp")
    if not timestamp or not isinstance(timestamp, str | int | float) or isinstance(timestamp, bool):
        timestamp = utc_timestamp()

    workspace.sequence += 1
    event = StoredEvent.from_payload(dict(raw), sequence=workspace.sequence, timestamp=timestamp)
    workspace.events.push(event)
    workspace.agents[AgentEntry.key_for(event)] = AgentEntry.from_event(event, seen_at=utc_timestamp())
    delivered = publish(workspace, event)

    logger.debug(
        "Ingest: {} seq={} hook={} tool={} -> {} subscribers",
        workspace.label,
        event.sequence,
        event.hook_event_name,
        event.tool_name,
        delivered,
    )
    return event


def query_events(workspace: Workspace, filters: EventFilters | None = None) -> list[StoredEvent]:
    """Filtered, chronologically ordered read over a snapshot of the store.

    ``limit`` keeps the most recent matches.  Never mutates the workspace.
    """
    events = workspace.events.snapshot()
    if filters is None:
        return events

    result = [event for event in events if filters.matches(event)]
    if filters.limit is not None and filters.limit > 0:
        result = result[-filters.limit :]
    return result


def list_agents(workspace: Workspace) -> list[AgentEntry]:
    """Agent directory entries, in the order each agent was first seen."""
    return list(workspace.agents.values())
