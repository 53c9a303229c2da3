from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.routing import APIRouter
from loguru import logger

from mohano.broker.context import BrokerState
from mohano.broker.log import setup_logging
from mohano.broker.models.api import HealthResponse
from mohano.broker.models.enums import CloseCode
from mohano.broker.routers.agents import router as agents_router
from mohano.broker.routers.events import router as events_router
from mohano.broker.routers.stream import router as stream_router
from mohano.broker.routers.stream import ws_router
from mohano.broker.routers.tasks import router as tasks_router
from mohano.broker.routers.workspaces import router as workspaces_router
from mohano.broker.settings import BrokerSettings, get_settings
from mohano.broker.sweeper import WorkspaceSweeper


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    state: BrokerState = _app.state.broker
    settings = state.settings
    setup_logging(settings.log_level, json=settings.log_json)

    if state.api_key is None:
        logger.warning("No MOHANO_API_KEY set -- default workspace is open access")
    logger.info(
        "Event broker starting (host={}, port={}, max_events={}, workspace_ttl={}s)",
        settings.host,
        settings.port,
        settings.max_events,
        settings.workspace_ttl,
    )

    sweeper = WorkspaceSweeper(state.registry, settings.sweep_interval)
    sweeper.start()

    yield

    # -- Shutdown --------------------------------------------------------------
    await sweeper.stop()
    closed = state.registry.close_all(CloseCode.GOING_AWAY, "server shutting down")
    logger.info("Event broker shut down ({} subscribers closed)", closed)


def create_app(
    settings: BrokerSettings | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Build the broker app with a fresh ``BrokerState``.

    Under ``httpx.ASGITransport`` the lifespan does not run; the state is still
    usable because it is attached here rather than at startup.
    """
    settings = settings or get_settings()

    app = FastAPI(title="Mohano Event Broker", lifespan=lifespan)
    app.state.broker = BrokerState.from_settings(settings, clock=clock)

    # Hook scripts and dashboards may run on other origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # -------------------------------------------------------------------------
    # API router -- all HTTP endpoints live under /api
    # -------------------------------------------------------------------------
    api = APIRouter(prefix="/api")

    @api.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        registry = app.state.broker.registry
        return HealthResponse(workspaces=registry.workspace_count, subscribers=registry.subscriber_count)

    api.include_router(workspaces_router)
    api.include_router(events_router)
    api.include_router(agents_router)
    api.include_router(tasks_router)
    api.include_router(stream_router)

    app.include_router(api)
    app.include_router(ws_router)

    _mount_dashboard(app, settings.ui_dir)
    return app


def _mount_dashboard(app: FastAPI, ui_dir: Path) -> None:
    """Serve the dashboard SPA from *ui_dir*, if it exists.

    Unmatched paths (``/d/{token}`` included) fall back to ``index.html`` for
    client-side routing.
    """
    if not ui_dir.is_dir():
        return
    root = ui_dir.resolve()

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_dashboard(full_path: str) -> FileResponse:
        file_path = (root / full_path).resolve()
        if full_path and file_path.is_file() and file_path.is_relative_to(root):
            return FileResponse(file_path)
        return FileResponse(root / "index.html")

    logger.debug("Dashboard: serving {}", root)


app = create_app()
