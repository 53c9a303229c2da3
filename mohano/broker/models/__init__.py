"""Data models for the event broker."""

from mohano.broker.models.api import HealthResponse, IngestResponse, WorkspaceCreateResponse
from mohano.broker.models.enums import CloseCode, Transport
from mohano.broker.models.events import AgentEntry, EventFilters, StoredEvent

__all__ = [
    # Events
    "AgentEntry",
    # Enums
    "CloseCode",
    "EventFilters",
    # API schemas
    "HealthResponse",
    "IngestResponse",
    "StoredEvent",
    "Transport",
    "WorkspaceCreateResponse",
]
