"""Unit tests for the periodic workspace sweeper."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

from mohano.broker.registry import WorkspaceRegistry
from mohano.broker.sweeper import WorkspaceSweeper

if TYPE_CHECKING:
    from tests.conftest import FakeClock


def test_run_once_evicts(registry: WorkspaceRegistry, clock: FakeClock) -> None:
    registry.create()
    registry.create()
    clock.advance(101)

    assert WorkspaceSweeper(registry, interval=60).run_once() == 2
    assert registry.workspace_count == 0


def test_run_once_survives_errors() -> None:
    registry = MagicMock(spec=WorkspaceRegistry)
    registry.sweep.side_effect = RuntimeError("boom")

    assert WorkspaceSweeper(registry, interval=60).run_once() == 0


async def test_background_loop(registry: WorkspaceRegistry, clock: FakeClock) -> None:
    token, _ = registry.create()
    clock.advance(101)

    sweeper = WorkspaceSweeper(registry, interval=0.01)
    sweeper.start()
    assert sweeper.running
    for _ in range(100):
        if token not in registry:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert token not in registry
    assert not sweeper.running


async def test_background_loop_keeps_running_after_failure() -> None:
    registry = MagicMock(spec=WorkspaceRegistry)
    registry.ttl = 100
    registry.sweep.side_effect = [RuntimeError("boom"), 0, 0, 0, 0, 0, 0, 0, 0, 0]

    sweeper = WorkspaceSweeper(registry, interval=0.01)
    sweeper.start()
    for _ in range(100):
        if registry.sweep.call_count >= 2:
            break
        await asyncio.sleep(0.01)
    assert sweeper.running
    await sweeper.stop()

    assert registry.sweep.call_count >= 2
