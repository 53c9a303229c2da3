"""Event envelope and agent directory models.

Producers send free-form JSON objects.  At ingestion the broker lifts the
handful of fields it indexes on into typed attributes of ``StoredEvent`` and
keeps the producer's object untouched as ``payload``.  Reads never inspect the
payload again.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

INDEXED_FIELDS = (
    "session_id",
    "agent_id",
    "agent_type",
    "agent_name",
    "teammate_name",
    "team_name",
    "tool_name",
    "hook_event_name",
)


def _as_text(value: Any) -> str | None:
    """Normalise an indexed field; only scalar values are indexable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, int | float):
        return str(value)
    return None


class StoredEvent(BaseModel):
    """An ingested event.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=1, description="Per-workspace ingestion order, starting at 1.")
    timestamp: str | int | float

    session_id: str | None = None
    agent_id: str | None = None
    agent_type: str | None = None
    agent_name: str | None = None
    teammate_name: str | None = None
    team_name: str | None = None
    tool_name: str | None = None
    hook_event_name: str | None = None

    payload: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, sequence: int, timestamp: str | int | float) -> StoredEvent:
        indexed = {name: _as_text(payload.get(name)) for name in INDEXED_FIELDS}
        return cls(sequence=sequence, timestamp=timestamp, payload=payload, **indexed)

    def to_wire(self) -> dict[str, Any]:
        """Producer's object with the broker-assigned ``timestamp`` and ``sequence``."""
        return {**self.payload, "timestamp": self.timestamp, "sequence": self.sequence}


class EventFilters(BaseModel):
    """Conjunctive predicates for replay queries.  Unset fields match everything."""

    session_id: str | None = None
    agent_type: str | None = None
    tool_name: str | None = None
    hook_event_name: str | None = None
    since_seq: int | None = Field(default=None, description="Only events with sequence strictly greater.")
    limit: int | None = Field(default=None, description="Keep the most recent N matches; <= 0 means no cap.")

    def matches(self, event: StoredEvent) -> bool:
        if self.session_id and event.session_id != self.session_id:
            return False
        if self.agent_type and event.agent_type != self.agent_type:
            return False
        if self.tool_name and event.tool_name != self.tool_name:
            return False
        if self.hook_event_name and event.hook_event_name != self.hook_event_name:
            return False
        return not (self.since_seq is not None and event.sequence <= self.since_seq)


class AgentEntry(BaseModel):
    """Last known identity of one agent within one session."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    agent_type: str | None = None
    agent_name: str | None = None
    session_id: str
    teammate_name: str | None = None
    team_name: str | None = None
    last_seen: str

    @staticmethod
    def key_for(event: StoredEvent) -> str:
        """Directory key: ``{session}:{agent_id | agent_name | 'default'}``."""
        return f"{event.session_id or ''}:{event.agent_id or event.agent_name or 'default'}"

    @classmethod
    def from_event(cls, event: StoredEvent, *, seen_at: str) -> AgentEntry:
        return cls(
            agent_id=event.agent_id or event.session_id or "",
            agent_type=event.agent_type,
            agent_name=event.agent_name,
            session_id=event.session_id or "",
            teammate_name=event.teammate_name,
            team_name=event.team_name,
            last_seen=seen_at,
        )
