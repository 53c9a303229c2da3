"""Fixed-capacity ring buffer holding a workspace's recent events."""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Insertion-ordered buffer that overwrites its oldest entry when full.

    Slots are preallocated; ``_head`` is the next write position.  Once the
    buffer has wrapped, ``_head`` also marks the oldest retained entry.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            msg = f"RingBuffer capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._slots: list[T | None] = [None] * capacity
        self._head = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._count

    def push(self, item: T) -> None:
        self._slots[self._head] = item
        self._head = (self._head + 1) % self._capacity
        if self._count < self._capacity:
            self._count += 1

    def snapshot(self) -> list[T]:
        """Return retained items oldest first.

        When wrapped, the tail ``[_head:]`` holds the oldest entries and the
        head ``[:_head]`` the newest.
        """
        if self._count < self._capacity:
            return list(self._slots[: self._count])  # type: ignore[arg-type]
        return self._slots[self._head :] + self._slots[: self._head]  # type: ignore[return-value]
