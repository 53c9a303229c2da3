"""Read-only scan of externally written task files.

Layout::

    {tasks_dir}/{team}/{task}.json

Each readable JSON object is returned with ``path`` (``team/file``) and
``team`` added.  Files that cannot be read or parsed are skipped.  The scan is
outside the broker's consistency domain and never touches workspace state.

Uses ``anyio.to_thread.run_sync`` so directory walks do not block the loop.
"""

from __future__ import annotations

import json
from functools import partial
from pathlib import Path
from typing import Any

from anyio import to_thread
from loguru import logger


async def scan_task_files(tasks_dir: str | Path) -> list[dict[str, Any]]:
    return await to_thread.run_sync(partial(_scan, Path(tasks_dir)))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _scan(tasks_dir: Path) -> list[dict[str, Any]]:
    if not tasks_dir.is_dir():
        return []

    results: list[dict[str, Any]] = []
    for team_dir in sorted(tasks_dir.iterdir()):
        if not team_dir.is_dir():
            continue
        for path in sorted(team_dir.glob("*.json")):
            task = _read_task(path)
            if task is not None:
                results.append({"path": f"{team_dir.name}/{path.name}", "team": team_dir.name, **task})
    return results


def _read_task(path: Path) -> dict[str, Any] | None:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.debug("Tasks: skipping unreadable {}: {}", path, exc)
        return None
    if not isinstance(parsed, dict):
        logger.debug("Tasks: skipping {} (not a JSON object)", path)
        return None
    return parsed
