"""Agent directory endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from mohano.broker.deps import AdmittedWorkspace
from mohano.broker.managers.events import list_agents
from mohano.broker.models.events import AgentEntry

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("", response_model=list[AgentEntry])
async def handle_list_agents(workspace: AdmittedWorkspace) -> list[AgentEntry]:
    return list_agents(workspace)
