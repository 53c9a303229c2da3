"""Task file side channel (read-only, not workspace-scoped data)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from mohano.broker.deps import AdmittedWorkspace, State
from mohano.broker.managers.tasks import scan_task_files

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
async def handle_list_tasks(_workspace: AdmittedWorkspace, state: State) -> list[dict[str, Any]]:
    """List task files under the configured tasks directory.

    Admission still applies so a locked-down deployment does not leak them.
    """
    return await scan_task_files(state.settings.tasks_dir)
