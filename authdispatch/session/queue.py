"""FIFO of envelopes waiting for the session to become ready."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Deque, Iterator, List

if TYPE_CHECKING:
    from authdispatch.api.envelope import Envelope


class PendingRequestQueue:
    """Unbounded FIFO of envelopes admitted before authentication completed.

    The queue has no lock of its own: every mutation happens while the owning
    session holds its state lock.
    """

    def __init__(self) -> None:
        self._items: Deque["Envelope"] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator["Envelope"]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)

    def append(self, envelope: "Envelope") -> int:
        """Enqueue ``envelope`` and return the new queue depth."""

        self._items.append(envelope)
        return len(self._items)

    def drain(self) -> List["Envelope"]:
        """Remove and return every queued envelope in arrival order."""

        drained = list(self._items)
        self._items.clear()
        return drained

    def clear(self) -> int:
        """Discard every queued envelope; returns how many were dropped."""

        dropped = len(self._items)
        self._items.clear()
        return dropped
