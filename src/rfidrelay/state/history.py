"""Bounded, newest-first tag read history."""

from __future__ import annotations

import threading
from collections import deque

from rfidrelay._constants import DEFAULT_HISTORY_CAPACITY
from rfidrelay.models.tag_read import TagReadRecord


class HistoryBuffer:
    """Fixed-capacity store of the most recent tag reads.

    Order is arrival order at the relay, newest first. ``append`` and
    ``snapshot`` are linearizable: a snapshot taken while an append is
    in flight sees either the state before it or after it.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: deque[TagReadRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, record: TagReadRecord) -> TagReadRecord | None:
        """Insert *record* at the head, returning the evicted tail if any."""
        with self._lock:
            evicted = self._items[-1] if len(self._items) == self._capacity else None
            # A full bounded deque drops its right (oldest) end on appendleft.
            self._items.appendleft(record)
        return evicted

    def snapshot(self) -> tuple[TagReadRecord, ...]:
        """Point-in-time copy of the history, newest first."""
        with self._lock:
            return tuple(self._items)
