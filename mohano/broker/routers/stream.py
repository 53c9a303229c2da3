"""Live subscription endpoints.

Two transports over the same ``Subscriber`` queue:

- ``WS /ws`` -- one JSON text frame per event.  Admission failures and
  broker-initiated closes use the application close codes in ``CloseCode``
  (4001 invalid workspace, 4002 expired, 4003 unauthorized).
- ``GET /api/stream`` -- Server-Sent Events; ``message`` per event,
  ``heartbeat`` while idle and a final ``closed`` frame with code and reason.

Subscribers only see events ingested after they joined; use
``GET /api/events?since_seq=`` to backfill.
"""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator

import anyio
from fastapi import APIRouter, WebSocket
from loguru import logger
from sse_starlette.sse import EventSourceResponse
from starlette.websockets import WebSocketDisconnect

from mohano.broker.admission import authorize
from mohano.broker.deps import AdmittedWorkspace, RequestCredentials, State, to_http_exception
from mohano.broker.errors import InvalidWorkspaceError, UnauthorizedError
from mohano.broker.models.enums import CloseCode, Transport
from mohano.broker.registry import Workspace, WorkspaceRegistry
from mohano.broker.subscribers import Subscriber

router = APIRouter(prefix="/stream", tags=["stream"])
ws_router = APIRouter(tags=["stream"])


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


@ws_router.websocket("/ws")
async def handle_websocket(websocket: WebSocket, state: State, credentials: RequestCredentials) -> None:
    # Accept first so the close code reaches the client; a rejected connection
    # never joins a subscriber set.
    await websocket.accept()
    try:
        workspace = authorize(state.registry, credentials, api_key=state.api_key)
    except InvalidWorkspaceError:
        await websocket.close(code=CloseCode.INVALID_WORKSPACE, reason="Invalid workspace token")
        return
    except UnauthorizedError:
        await websocket.close(code=CloseCode.UNAUTHORIZED, reason="Unauthorized")
        return

    subscriber = Subscriber(Transport.WEBSOCKET, max_queue=state.settings.subscriber_queue_size)
    state.registry.attach(workspace, subscriber)
    try:
        await _pump_websocket(websocket, subscriber)
    finally:
        state.registry.detach(workspace, subscriber)


async def _pump_websocket(websocket: WebSocket, subscriber: Subscriber) -> None:
    """Forward queued messages until either side closes."""
    client_gone = False

    async def watch_client() -> None:
        nonlocal client_gone
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
        client_gone = True
        subscriber.close(CloseCode.NORMAL, "client disconnected")

    async with anyio.create_task_group() as tg:
        tg.start_soon(watch_client)
        try:
            async for message in subscriber.messages():
                await websocket.send_text(message)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.debug("Stream: send to {} failed: {!r}", subscriber, exc)
            client_gone = True
            subscriber.close(CloseCode.NORMAL, "send failed")
        tg.cancel_scope.cancel()

    if not client_gone:
        with contextlib.suppress(RuntimeError):
            await websocket.close(code=subscriber.close_code or CloseCode.NORMAL, reason=subscriber.close_reason)


# ---------------------------------------------------------------------------
# Server-Sent Events
# ---------------------------------------------------------------------------


@router.get("")
async def handle_sse(workspace: AdmittedWorkspace, state: State) -> EventSourceResponse:
    if not state.registry.is_live(workspace):
        raise to_http_exception(InvalidWorkspaceError(workspace.workspace_id))

    return EventSourceResponse(
        sse_session(
            state.registry,
            workspace,
            max_queue=state.settings.subscriber_queue_size,
            heartbeat=state.settings.stream_heartbeat_interval,
        )
    )


async def sse_session(
    registry: WorkspaceRegistry,
    workspace: Workspace,
    *,
    max_queue: int,
    heartbeat: float,
) -> AsyncIterator[dict[str, str]]:
    """Subscribe for as long as the response body is being consumed.

    The subscriber joins on the first iteration, so a client that leaves
    before the stream starts never occupies a slot.
    """
    subscriber = Subscriber(Transport.SSE, max_queue=max_queue)
    try:
        registry.attach(workspace, subscriber)
    except InvalidWorkspaceError:
        subscriber.close(CloseCode.WORKSPACE_EXPIRED, "workspace expired")
    try:
        async for frame in sse_frames(subscriber, heartbeat=heartbeat):
            yield frame
    finally:
        registry.detach(workspace, subscriber)
        subscriber.close(CloseCode.NORMAL, "client disconnected")


async def sse_frames(subscriber: Subscriber, *, heartbeat: float) -> AsyncIterator[dict[str, str]]:
    """SSE frames for one subscriber, ending with a ``closed`` frame."""
    yield {"event": "connected", "data": json.dumps({"subscriber_id": subscriber.subscriber_id})}
    while True:
        try:
            message = await subscriber.next_message(timeout=heartbeat)
        except TimeoutError:
            yield {"event": "heartbeat", "data": "{}"}
            continue
        if message is None:
            break
        yield {"event": "message", "data": message}

    yield {
        "event": "closed",
        "data": json.dumps({"code": int(subscriber.close_code or CloseCode.NORMAL), "reason": subscriber.close_reason}),
    }
