"""Live subscribers and best-effort broadcast fan-out.

Each subscriber owns a bounded queue of pre-serialised messages.  Fan-out is
a synchronous ``put_nowait`` per subscriber, so it runs inside the ingesting
handler's step and preserves ingestion order per subscriber.  A transport
task (websocket or SSE) drains the queue at its own pace.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Final

from loguru import logger

from mohano.broker.models.enums import CloseCode, Transport

if TYPE_CHECKING:
    from mohano.broker.models.events import StoredEvent
    from mohano.broker.registry import Workspace


class SubscriberClosedError(RuntimeError):
    """Raised when delivering to a subscriber that has already been closed."""


class SubscriberOverflowError(RuntimeError):
    """Raised when a subscriber's queue is full (consumer too slow)."""


_CLOSED: Final = object()


class Subscriber:
    """A live observer attached to exactly one workspace.

    The queue is sized ``max_queue + 1``: ``deliver`` never uses the last slot,
    so ``close`` can always enqueue its end-of-stream marker without blocking.
    """

    def __init__(self, transport: Transport, *, max_queue: int = 1000) -> None:
        self.subscriber_id = uuid.uuid4().hex[:12]
        self.transport = transport
        self._max_queue = max_queue
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_queue + 1)
        self._drained = False
        self.close_code: CloseCode | None = None
        self.close_reason: str = ""

    def __repr__(self) -> str:
        return f"Subscriber({self.subscriber_id}, {self.transport})"

    @property
    def closed(self) -> bool:
        return self.close_code is not None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # -- Producer side ---------------------------------------------------------

    def deliver(self, message: str) -> None:
        if self.closed:
            raise SubscriberClosedError(self.subscriber_id)
        if self._queue.qsize() >= self._max_queue:
            raise SubscriberOverflowError(self.subscriber_id)
        self._queue.put_nowait(message)

    def close(self, code: CloseCode, reason: str = "") -> None:
        """Stop delivery.  Messages already queued are still drained first.  Idempotent."""
        if self.closed:
            return
        self.close_code = code
        self.close_reason = reason
        self._queue.put_nowait(_CLOSED)

    # -- Consumer side ---------------------------------------------------------

    async def next_message(self, timeout: float | None = None) -> str | None:
        """Wait for the next message; ``None`` once the subscriber is closed.

        Raises ``TimeoutError`` if nothing arrives within *timeout* seconds.
        """
        if self._drained:
            return None
        item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if item is _CLOSED:
            self._drained = True
            return None
        return item  # type: ignore[return-value]

    async def messages(self) -> AsyncIterator[str]:
        while (message := await self.next_message()) is not None:
            yield message


def publish(workspace: Workspace, event: StoredEvent) -> int:
    """Deliver *event* to every subscriber of *workspace*.

    Failing subscribers are dropped from the set; nothing propagates to the
    caller.  Returns the number of subscribers the event was queued for.
    """
    if not workspace.subscribers:
        return 0

    message = json.dumps(event.to_wire(), default=str, allow_nan=False)
    delivered = 0
    for subscriber in list(workspace.subscribers):
        try:
            subscriber.deliver(message)
        except SubscriberClosedError:
            workspace.subscribers.discard(subscriber)
            logger.debug("Fan-out: dropped closed {} from {}", subscriber, workspace.label)
        except SubscriberOverflowError:
            workspace.subscribers.discard(subscriber)
            subscriber.close(CloseCode.TRY_AGAIN_LATER, "subscriber too slow")
            logger.warning(
                "Fan-out: {} overflowed ({} pending) in {}, disconnecting",
                subscriber,
                subscriber.pending,
                workspace.label,
            )
        else:
            delivered += 1
    return delivered
