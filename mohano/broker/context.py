"""Process-scoped broker state.

Built once by the app factory and stored on ``app.state.broker``.  Components
receive it by reference; tests build a fresh one per test.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from mohano.broker.admission import FixedWindowRateLimiter
from mohano.broker.registry import WorkspaceRegistry
from mohano.broker.settings import BrokerSettings


@dataclass
class BrokerState:
    settings: BrokerSettings
    registry: WorkspaceRegistry
    creation_limiter: FixedWindowRateLimiter

    @classmethod
    def from_settings(cls, settings: BrokerSettings, *, clock: Callable[[], float] = time.monotonic) -> BrokerState:
        return cls(
            settings=settings,
            registry=WorkspaceRegistry(
                capacity=settings.max_events,
                ttl=settings.workspace_ttl,
                clock=clock,
            ),
            creation_limiter=FixedWindowRateLimiter(
                settings.workspace_create_limit,
                settings.workspace_create_window,
                clock=clock,
            ),
        )

    @property
    def api_key(self) -> str | None:
        return self.settings.resolve_api_key()
