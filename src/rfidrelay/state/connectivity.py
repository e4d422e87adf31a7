"""Broker connectivity state.

Written only by broker lifecycle handlers; read when informing viewers.
"""

from __future__ import annotations

import threading
from typing import Any

from rfidrelay.models.status import ConnectivityState


class ConnectivityTracker:
    """Lock-guarded holder supporting plain read and replace."""

    def __init__(self, initial: ConnectivityState | None = None) -> None:
        self._state = initial if initial is not None else ConnectivityState(connected=False)
        self._lock = threading.Lock()

    def get(self) -> ConnectivityState:
        with self._lock:
            return self._state

    @property
    def connected(self) -> bool:
        return self.get().connected

    def replace(self, state: ConnectivityState) -> bool:
        """Swap in *state*; return ``True`` when it differs from the current one."""
        with self._lock:
            if state == self._state:
                return False
            self._state = state
            return True

    def update(self, **changes: Any) -> ConnectivityState | None:
        """Apply field *changes* atomically.

        Returns the new state, or ``None`` when nothing changed.
        """
        with self._lock:
            candidate = self._state.model_copy(update=changes)
            if candidate == self._state:
                return None
            self._state = candidate
            return candidate
