"""Workspace creation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from mohano.broker.admission import authorize_creation
from mohano.broker.deps import RequestCredentials, State, to_http_exception
from mohano.broker.errors import BrokerError
from mohano.broker.models.api import WorkspaceCreateResponse

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.post("/create", response_model=WorkspaceCreateResponse, status_code=status.HTTP_201_CREATED)
async def handle_create_workspace(
    request: Request,
    response: Response,
    state: State,
    credentials: RequestCredentials,
) -> WorkspaceCreateResponse:
    """Create an isolated workspace.

    The token in the response is the only credential for it; share the
    dashboard URL to give others read access.
    """
    try:
        authorize_creation(
            state.creation_limiter,
            credentials,
            api_key=state.api_key,
            open_creation=state.settings.open_workspace_creation,
        )
    except BrokerError as exc:
        raise to_http_exception(exc) from None

    token, _workspace = state.registry.create()
    response.headers["X-RateLimit-Remaining"] = str(state.creation_limiter.remaining)
    base_url = (state.settings.public_url or str(request.base_url)).rstrip("/")
    return WorkspaceCreateResponse(
        token=token,
        dashboard_url=f"{base_url}/d/{token}",
        expires_after=state.registry.ttl,
    )
