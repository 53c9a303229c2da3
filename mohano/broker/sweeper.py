"""Periodic eviction of idle workspaces."""

from __future__ import annotations

import asyncio
import contextlib

from loguru import logger

from mohano.broker.registry import WorkspaceRegistry


class WorkspaceSweeper:
    """Runs ``registry.sweep()`` every *interval* seconds on the event loop.

    A failing sweep is logged and the loop carries on; only ``stop()`` ends it.
    """

    def __init__(self, registry: WorkspaceRegistry, interval: float) -> None:
        self._registry = registry
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="workspace-sweeper")
        logger.info("Sweeper: started (interval={}s, ttl={}s)", self._interval, self._registry.ttl)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Sweeper: stopped")

    def run_once(self) -> int:
        try:
            evicted = self._registry.sweep()
        except Exception:
            logger.exception("Sweeper: sweep failed")
            return 0
        if evicted:
            logger.info("Sweeper: evicted {} workspaces ({} remaining)", evicted, self._registry.workspace_count)
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.run_once()
