"""In-process workspace registry.

Maps opaque tokens to isolated workspaces (event history, subscribers,
sequence counter, agent directory).  Ephemeral -- empty on process restart.

Every mutation here is synchronous.  Under the single asyncio loop each call
runs to completion without interleaving, so no locking is needed.
"""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from mohano.broker.buffer import RingBuffer
from mohano.broker.errors import InvalidWorkspaceError
from mohano.broker.models.enums import CloseCode
from mohano.broker.models.events import AgentEntry, StoredEvent
from mohano.broker.subscribers import Subscriber

DEFAULT_WORKSPACE_ID = "default"
TOKEN_PREFIX = "ws_"

_TOKEN_SHAPE = re.compile(r"^ws_[A-Za-z0-9_-]{16,}$")


def is_workspace_token(value: str | None) -> bool:
    """True if *value* looks like an issued workspace token."""
    return bool(value) and _TOKEN_SHAPE.match(value) is not None  # type: ignore[arg-type]


def new_workspace_token() -> str:
    return TOKEN_PREFIX + secrets.token_urlsafe(24)


@dataclass(eq=False)
class Workspace:
    """Isolated broker state behind one token (or the default workspace)."""

    workspace_id: str
    events: RingBuffer[StoredEvent]
    last_activity: float
    sequence: int = 0
    subscribers: set[Subscriber] = field(default_factory=set)
    agents: dict[str, AgentEntry] = field(default_factory=dict)

    evicted: bool = False
    """Set once the registry drops this workspace.  Handlers holding a
    reference may keep writing to it, but nothing will ever read it again."""

    @property
    def is_default(self) -> bool:
        return self.workspace_id == DEFAULT_WORKSPACE_ID

    @property
    def label(self) -> str:
        """Log-safe identifier; tokens are capabilities and are never logged whole."""
        if self.is_default:
            return "workspace[default]"
        return f"workspace[{self.workspace_id[:7]}...]"


class WorkspaceRegistry:
    """Token -> workspace map with TTL-based eviction.

    The default workspace is created with the registry and is never evicted.
    *clock* returns monotonic seconds; tests inject a fake one.
    """

    def __init__(
        self,
        *,
        capacity: int = 2000,
        ttl: float = 24 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._capacity = capacity
        self._ttl = ttl
        self._clock = clock
        self._workspaces: dict[str, Workspace] = {}
        self._default = self._new_workspace(DEFAULT_WORKSPACE_ID)

    def _new_workspace(self, workspace_id: str) -> Workspace:
        now = self._clock()
        return Workspace(
            workspace_id=workspace_id,
            events=RingBuffer(self._capacity),
            last_activity=now,
        )

    # -- Lookup ----------------------------------------------------------------

    @property
    def default(self) -> Workspace:
        return self._default

    @property
    def ttl(self) -> float:
        return self._ttl

    def resolve(self, token: str | None) -> Workspace:
        """Map a token to its workspace.

        Absent or non-token-shaped values select the default workspace.  A
        token-shaped value must be registered, otherwise
        ``InvalidWorkspaceError`` -- whether it never existed or has expired.
        """
        if not is_workspace_token(token):
            return self._default
        workspace = self._workspaces.get(token)  # type: ignore[arg-type]
        if workspace is None:
            raise InvalidWorkspaceError(token)
        return workspace

    def is_live(self, workspace: Workspace) -> bool:
        """False for a workspace object that has been evicted since it was resolved."""
        return workspace.is_default or self._workspaces.get(workspace.workspace_id) is workspace

    def __contains__(self, token: object) -> bool:
        return token in self._workspaces

    @property
    def workspace_count(self) -> int:
        """Number of token workspaces (the default workspace is not counted)."""
        return len(self._workspaces)

    @property
    def subscriber_count(self) -> int:
        return len(self._default.subscribers) + sum(len(ws.subscribers) for ws in self._workspaces.values())

    # -- Mutation --------------------------------------------------------------

    def create(self) -> tuple[str, Workspace]:
        """Register a fresh, empty workspace and return its token."""
        token = new_workspace_token()
        workspace = self._new_workspace(token)
        self._workspaces[token] = workspace
        logger.info("Registry: created {} (total={})", workspace.label, len(self._workspaces))
        return token, workspace

    def touch(self, workspace: Workspace) -> None:
        workspace.last_activity = self._clock()

    def attach(self, workspace: Workspace, subscriber: Subscriber) -> None:
        """Admit *subscriber* into *workspace*.  Raises if the workspace is gone."""
        if not self.is_live(workspace):
            raise InvalidWorkspaceError(workspace.workspace_id)
        workspace.subscribers.add(subscriber)
        self.touch(workspace)
        logger.debug("Registry: {} joined {} (subscribers={})", subscriber, workspace.label, len(workspace.subscribers))

    def detach(self, workspace: Workspace, subscriber: Subscriber) -> None:
        if subscriber in workspace.subscribers:
            workspace.subscribers.discard(subscriber)
            logger.debug("Registry: {} left {}", subscriber, workspace.label)

    # -- Eviction --------------------------------------------------------------

    def sweep(self, now: float | None = None) -> int:
        """Evict token workspaces idle for longer than the TTL.

        Subscribers are closed with ``WORKSPACE_EXPIRED`` before the workspace
        leaves the map.  A workspace that fails to tear down is logged and left
        for the next sweep; the rest are still processed.  Returns the number
        of workspaces evicted.
        """
        if now is None:
            now = self._clock()
        stale = [(token, ws) for token, ws in self._workspaces.items() if now - ws.last_activity > self._ttl]

        evicted = 0
        for token, workspace in stale:
            try:
                closed = _close_subscribers(workspace, CloseCode.WORKSPACE_EXPIRED, "workspace expired")
                del self._workspaces[token]
                workspace.evicted = True
                workspace.agents.clear()
            except Exception:
                logger.exception("Registry: failed to evict {}, will retry next sweep", workspace.label)
                continue
            evicted += 1
            logger.info(
                "Registry: evicted {} after {:.0f}s idle ({} events, {} subscribers closed)",
                workspace.label,
                now - workspace.last_activity,
                len(workspace.events),
                closed,
            )
        return evicted

    def close_all(self, code: CloseCode, reason: str = "") -> int:
        """Close every subscriber in every workspace (process shutdown)."""
        closed = _close_subscribers(self._default, code, reason)
        for workspace in self._workspaces.values():
            closed += _close_subscribers(workspace, code, reason)
        return closed


def _close_subscribers(workspace: Workspace, code: CloseCode, reason: str) -> int:
    """Signal every subscriber of *workspace* to close and empty the set."""
    closed = 0
    for subscriber in list(workspace.subscribers):
        try:
            subscriber.close(code, reason)
        except Exception:
            logger.opt(exception=True).warning("Registry: error closing {} in {}", subscriber, workspace.label)
        else:
            closed += 1
        workspace.subscribers.discard(subscriber)
    return closed
