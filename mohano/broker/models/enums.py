"""Shared enumerations used across the broker."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class CloseCode(IntEnum):
    """WebSocket close codes sent to subscribers.

    The 4xxx range is application-defined; dashboards use it to tell a dead
    workspace (stop reconnecting) from a transient drop (reconnect).
    """

    NORMAL = 1000
    GOING_AWAY = 1001
    TRY_AGAIN_LATER = 1013

    INVALID_WORKSPACE = 4001
    WORKSPACE_EXPIRED = 4002
    UNAUTHORIZED = 4003


class Transport(StrEnum):
    """How a subscriber receives its events."""

    WEBSOCKET = "websocket"
    SSE = "sse"
