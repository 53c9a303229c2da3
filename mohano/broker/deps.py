"""FastAPI dependency injection for broker state and admission.

Usage in route handlers::

    @router.get("/things")
    async def list_things(workspace: AdmittedWorkspace) -> list[dict]:
        ...

``AdmittedWorkspace`` resolves the token, runs admission and touches the
workspace, raising 401 / 404 on failure.  Websocket routes cannot answer with
an HTTP status, so they take ``Credentials`` and call ``authorize`` directly.
"""

from __future__ import annotations

import math
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from starlette.requests import HTTPConnection

from mohano.broker.admission import Credentials, authorize, parse_bearer
from mohano.broker.context import BrokerState
from mohano.broker.errors import (
    BrokerError,
    InvalidPayloadError,
    InvalidWorkspaceError,
    RateLimitedError,
    UnauthorizedError,
)
from mohano.broker.registry import Workspace


def to_http_exception(exc: BrokerError) -> HTTPException:
    """Translate a domain error into the HTTP error the API reports."""
    if isinstance(exc, InvalidPayloadError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc) or "Invalid payload")
    if isinstance(exc, UnauthorizedError):
        return HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(exc, InvalidWorkspaceError):
        return HTTPException(status.HTTP_404_NOT_FOUND, detail="Invalid or expired workspace token")
    if isinstance(exc, RateLimitedError):
        return HTTPException(
            status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limited",
            headers={"Retry-After": str(max(math.ceil(exc.retry_after), 1))},
        )
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


async def get_state(conn: HTTPConnection) -> BrokerState:
    """Return the broker state attached by the app factory."""
    return conn.app.state.broker


async def get_credentials(
    conn: HTTPConnection,
    token: str | None = Query(None, description="Workspace token."),
    api_key: str | None = Query(None, description="Global key for the default workspace."),
) -> Credentials:
    return Credentials(token=token, bearer=parse_bearer(conn.headers.get("authorization")), api_key=api_key)


State = Annotated[BrokerState, Depends(get_state)]
"""Annotated dependency: process-scoped broker state."""

RequestCredentials = Annotated[Credentials, Depends(get_credentials)]
"""Annotated dependency: token / key material presented by the caller."""


async def get_workspace(state: State, credentials: RequestCredentials) -> Workspace:
    try:
        return authorize(state.registry, credentials, api_key=state.api_key)
    except BrokerError as exc:
        raise to_http_exception(exc) from None


AdmittedWorkspace = Annotated[Workspace, Depends(get_workspace)]
"""Annotated dependency: resolved, admitted and touched workspace."""
