"""Event ingestion and replay endpoints.

Thin HTTP adapter -- delegates to ``managers.events``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request

from mohano.broker.deps import AdmittedWorkspace, State, to_http_exception
from mohano.broker.errors import BrokerError, InvalidWorkspaceError
from mohano.broker.managers.events import decode_event_body, ingest_event, query_events
from mohano.broker.models.api import IngestResponse
from mohano.broker.models.events import EventFilters

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=IngestResponse)
async def handle_ingest(request: Request, workspace: AdmittedWorkspace, state: State) -> IngestResponse:
    body = await request.body()
    try:
        raw = decode_event_body(body)
        # The body read may have suspended long enough for a sweep to evict us.
        if not state.registry.is_live(workspace):
            raise InvalidWorkspaceError(workspace.workspace_id)
        state.registry.touch(workspace)
        event = ingest_event(workspace, raw)
    except BrokerError as exc:
        raise to_http_exception(exc) from None
    return IngestResponse(sequence=event.sequence)


@router.get("")
async def handle_query(
    workspace: AdmittedWorkspace,
    session_id: str | None = Query(None),
    agent_type: str | None = Query(None),
    tool_name: str | None = Query(None),
    hook_event_name: str | None = Query(None),
    since_seq: int | None = Query(None, description="Only events with a greater sequence number."),
    limit: int | None = Query(None, description="Keep only the most recent N matches."),
) -> list[dict[str, Any]]:
    filters = EventFilters(
        session_id=session_id,
        agent_type=agent_type,
        tool_name=tool_name,
        hook_event_name=hook_event_name,
        since_seq=since_seq,
        limit=limit,
    )
    return [event.to_wire() for event in query_events(workspace, filters)]
