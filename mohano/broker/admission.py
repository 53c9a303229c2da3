"""Admission control: who may touch which workspace.

- Default workspace: open unless a global key is configured, in which case the
  caller must present it (``Authorization: Bearer <key>`` or ``?api_key=``).
- Token workspace: the token is the capability; it only has to resolve.
- Workspace creation: gated by a process-wide fixed-window rate limiter.

All checks are synchronous and complete before any handler suspends.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from mohano.broker.errors import RateLimitedError, UnauthorizedError
from mohano.broker.registry import Workspace, WorkspaceRegistry, is_workspace_token


@dataclass(frozen=True)
class Credentials:
    """Everything a request presented that admission looks at."""

    token: str | None = None
    """``?token=`` query parameter."""

    bearer: str | None = None
    """Value of an ``Authorization: Bearer ...`` header."""

    api_key: str | None = None
    """``?api_key=`` query parameter (browsers cannot set headers on websockets)."""

    @property
    def workspace_token(self) -> str | None:
        if self.token:
            return self.token
        if is_workspace_token(self.bearer):
            return self.bearer
        return None

    def presents_key(self, key: str) -> bool:
        return any(
            candidate is not None and secrets.compare_digest(candidate.encode(), key.encode())
            for candidate in (self.bearer, self.api_key)
        )


def parse_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def authorize(registry: WorkspaceRegistry, credentials: Credentials, *, api_key: str | None) -> Workspace:
    """Resolve and admit the workspace a request addresses, then touch it.

    Raises ``InvalidWorkspaceError`` for unknown tokens and
    ``UnauthorizedError`` when the default workspace's key is missing.
    """
    workspace = registry.resolve(credentials.workspace_token)
    if workspace.is_default and api_key is not None and not credentials.presents_key(api_key):
        raise UnauthorizedError
    registry.touch(workspace)
    return workspace


class FixedWindowRateLimiter:
    """At most *limit* acquisitions per *window* seconds, process-wide.

    The window starts on the first acquisition after the previous one expired;
    when the clock passes the expiry the counter resets.
    """

    def __init__(self, limit: int, window: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._count = 0
        self._expires_at = 0.0

    @property
    def remaining(self) -> int:
        if self._clock() >= self._expires_at:
            return self.limit
        return max(self.limit - self._count, 0)

    def acquire(self) -> None:
        """Consume one unit of quota or raise ``RateLimitedError``."""
        now = self._clock()
        if now >= self._expires_at:
            self._count = 0
            self._expires_at = now + self.window
        if self._count >= self.limit:
            retry_after = self._expires_at - now
            logger.warning("Admission: workspace creation rate limited (retry in {:.1f}s)", retry_after)
            raise RateLimitedError(retry_after)
        self._count += 1


def authorize_creation(
    limiter: FixedWindowRateLimiter,
    credentials: Credentials,
    *,
    api_key: str | None,
    open_creation: bool,
) -> None:
    """Admit a workspace-creation request.

    The key check runs first so unauthorized callers never consume quota.
    """
    if not open_creation and api_key is not None and not credentials.presents_key(api_key):
        raise UnauthorizedError
    limiter.acquire()
