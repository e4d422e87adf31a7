"""Fan-out of relay events to connected viewers.

Each viewer gets its own bounded queue drained by its own sender task.
Pushing only enqueues, so a slow or broken viewer never holds up the
relay or the other viewers; it is dropped instead.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from typing import Any, Protocol

from rfidrelay._constants import DEFAULT_VIEWER_QUEUE_SIZE
from rfidrelay.exceptions import RelayClosedError, ViewerSendError
from rfidrelay.models.status import ViewerEvent, ViewerMessage

_logger = logging.getLogger(__name__)


class ViewerChannel(Protocol):
    """Transport to a single viewer (a WebSocket in production)."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...


class ViewerSession:
    """Opaque handle for one connected viewer."""

    def __init__(self, channel: ViewerChannel, *, queue_size: int = DEFAULT_VIEWER_QUEUE_SIZE) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self._sending = False
        self._task: asyncio.Task[None] | None = None

    @property
    def channel(self) -> ViewerChannel:
        return self._channel

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: str) -> None:
        """Queue *message* without waiting.

        Raises :class:`ViewerSendError` when the viewer is closed or has
        fallen too far behind.
        """
        if self._closed:
            raise ViewerSendError("viewer session is closed")
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull as exc:
            raise ViewerSendError(f"viewer fell behind by {self._queue.qsize()} messages") from exc

    def start(self, broadcaster: Broadcaster) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run(broadcaster))

    async def _run(self, broadcaster: Broadcaster) -> None:
        try:
            while True:
                message = await self._queue.get()
                if message is None:
                    break
                self._sending = True
                try:
                    await self._channel.send(message)
                finally:
                    self._sending = False
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            _logger.warning("Viewer send failed, dropping viewer: %s", exc)
            _logger.debug("Viewer send failure detail", exc_info=True)
            broadcaster.disconnect(self)
        finally:
            await self._close_channel()

    async def _close_channel(self) -> None:
        try:
            await self._channel.close()
        except Exception:
            _logger.debug("Viewer channel close failed", exc_info=True)

    def close(self) -> None:
        """Stop delivering; idempotent."""
        if self._closed:
            return
        self._closed = True
        # Undelivered messages are discarded.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        if self._sending and self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait_closed(self) -> None:
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.wait({task})


class Broadcaster:
    """Registry of viewer sessions with non-blocking fan-out."""

    def __init__(self, *, queue_size: int = DEFAULT_VIEWER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._sessions: set[ViewerSession] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def viewer_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self, channel: ViewerChannel, initial: Iterable[ViewerMessage] = ()) -> ViewerSession:
        """Register a viewer, queueing *initial* ahead of any later push.

        Must be called from the event loop the session should run on.
        """
        encoded = [message.encode() for message in initial]
        session = ViewerSession(channel, queue_size=self._queue_size + len(encoded))
        for message in encoded:
            session.offer(message)
        with self._lock:
            if self._closed:
                raise RelayClosedError("relay is shutting down")
            self._sessions.add(session)
        session.start(self)
        _logger.info("Viewer connected (%d total)", self.viewer_count)
        return session

    def disconnect(self, session: ViewerSession) -> bool:
        """Release *session*; duplicate calls are no-ops."""
        with self._lock:
            if session not in self._sessions:
                return False
            self._sessions.discard(session)
            remaining = len(self._sessions)
        session.close()
        _logger.info("Viewer disconnected (%d remaining)", remaining)
        return True

    def push(self, event: ViewerEvent, payload: Any) -> int:
        """Queue one event for every connected viewer.

        Returns the number of viewers it was queued for. Viewers that
        cannot take it are disconnected.
        """
        if self._closed:
            return 0
        encoded = ViewerMessage(event=event, data=payload).encode()
        with self._lock:
            sessions = list(self._sessions)

        delivered = 0
        for session in sessions:
            try:
                session.offer(encoded)
            except ViewerSendError as exc:
                _logger.warning("Dropping viewer during %s push: %s", event.value, exc)
                self.disconnect(session)
                continue
            delivered += 1
        return delivered

    async def close(self) -> None:
        """Disconnect every viewer and refuse new ones."""
        with self._lock:
            self._closed = True
            sessions = list(self._sessions)
        for session in sessions:
            self.disconnect(session)
        await asyncio.gather(*(session.wait_closed() for session in sessions))
