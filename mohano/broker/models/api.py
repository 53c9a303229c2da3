"""API request / response schemas.

Event bodies are free-form and are not modelled here; see
``models.events.StoredEvent`` for how they are indexed.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class IngestResponse(BaseModel):
    ok: bool = True
    sequence: int


class WorkspaceCreateResponse(BaseModel):
    """Returned once at creation; the token is never shown again."""

    token: str
    dashboard_url: str
    expires_after: float = Field(description="Seconds of inactivity before the workspace is evicted.")


class HealthResponse(BaseModel):
    status: str = "ok"
    workspaces: int = Field(description="Live token workspaces (the default workspace is not counted).")
    subscribers: int
