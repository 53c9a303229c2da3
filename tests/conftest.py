"""Shared test fixtures.

Every test gets its own settings, fake clock and app (hence its own
``BrokerState``), so no state leaks between tests.  Time-dependent behaviour
(TTL eviction, rate-limit windows) is driven by advancing ``FakeClock``
instead of sleeping.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from mohano.broker.app import create_app
from mohano.broker.context import BrokerState
from mohano.broker.registry import WorkspaceRegistry
from mohano.broker.settings import BrokerSettings


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> BrokerSettings:
    return BrokerSettings(
        _env_file=None,
        api_key=None,
        max_events=50,
        workspace_ttl=3600,
        sweep_interval=3600,
        workspace_create_limit=3,
        workspace_create_window=60,
        subscriber_queue_size=10,
        tasks_dir=tmp_path / "tasks",
        ui_dir=tmp_path / "ui",
    )


@pytest.fixture
def registry(clock: FakeClock) -> WorkspaceRegistry:
    """Small registry for unit tests: capacity 5, TTL 100s."""
    return WorkspaceRegistry(capacity=5, ttl=100, clock=clock)


@pytest.fixture
def app(settings: BrokerSettings, clock: FakeClock) -> FastAPI:
    return create_app(settings, clock=clock)


@pytest.fixture
def state(app: FastAPI) -> BrokerState:
    return app.state.broker


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app.

    The app lifespan does NOT run under ``ASGITransport``; the broker state is
    attached by ``create_app`` so no pre-seeding is needed.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sync_client(app: FastAPI) -> Iterator[TestClient]:
    """Blocking client running the full lifespan; needed for websocket tests."""
    with TestClient(app) as tc:
        yield tc
