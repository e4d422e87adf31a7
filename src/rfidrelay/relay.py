"""Tag read relay.

Owns the history buffer and connectivity state, and wires
broker link -> normalizer -> history -> broadcaster.
"""

from __future__ import annotations

import logging
import threading

from rfidrelay._constants import DEFAULT_HISTORY_CAPACITY, DEFAULT_TOPIC
from rfidrelay._mqtt import BrokerLink, LinkHandlers
from rfidrelay.broadcast import Broadcaster, ViewerChannel, ViewerSession
from rfidrelay.exceptions import PayloadDecodeError, RelayClosedError
from rfidrelay.ingestion.normalize import TagReadNormalizer
from rfidrelay.models.status import ConnectivityState, ViewerEvent, ViewerMessage
from rfidrelay.models.tag_read import TagReadRecord
from rfidrelay.state.connectivity import ConnectivityTracker
from rfidrelay.state.history import HistoryBuffer

_logger = logging.getLogger(__name__)


class TagRelay:
    """Relay tag reads from a broker link to connected viewers.

    Broker callbacks and viewer attach/detach run on one event loop; the
    relay lock additionally makes "append then push" and "snapshot then
    register" atomic with respect to each other, so a viewer never gets
    a live record that is also in (or missing from) its initial history.
    """

    def __init__(
        self,
        link: BrokerLink,
        *,
        topic: str = DEFAULT_TOPIC,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        broadcaster: Broadcaster | None = None,
        normalizer: TagReadNormalizer | None = None,
    ) -> None:
        self._link = link
        self._topic = topic
        self._broadcaster = broadcaster or Broadcaster()
        self._normalizer = normalizer or TagReadNormalizer()
        self._history = HistoryBuffer(capacity)
        self._connectivity = ConnectivityTracker()
        self._lock = threading.RLock()
        self._started = False
        self._closed = False

    @property
    def history(self) -> HistoryBuffer:
        return self._history

    @property
    def connectivity(self) -> ConnectivityState:
        return self._connectivity.get()

    @property
    def broadcaster(self) -> Broadcaster:
        return self._broadcaster

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Hook into the broker link and start it."""
        if self._closed:
            raise RelayClosedError("relay has been shut down")
        if self._started:
            return
        self._started = True
        self._link.on_lifecycle(
            LinkHandlers(
                on_connected=self.handle_connected,
                on_disconnected=self.handle_disconnected,
                on_reconnecting=self.handle_reconnecting,
                on_error=self.handle_error,
            )
        )
        self._link.subscribe(self._topic, self.handle_message)
        await self._link.start()

    async def shutdown(self) -> None:
        """Close the broker link and disconnect every viewer; idempotent."""
        if self._closed:
            return
        self._closed = True
        _logger.info("Stopping relay")
        try:
            await self._link.stop()
        finally:
            await self._broadcaster.close()

    # Broker side

    def handle_message(self, topic: str, payload: bytes) -> TagReadRecord | None:
        """Normalize, store and broadcast one inbound message.

        Malformed payloads are logged and dropped.
        """
        if self._closed:
            return None
        try:
            record = self._normalizer.normalize(topic, payload)
        except PayloadDecodeError as exc:
            _logger.warning("Failed to parse tag read from topic %s: %s", exc.topic, exc)
            return None

        _logger.info(
            "[%s] [%s] Tag: %s | Antenna: %s",
            record.event_time,
            record.gate,
            record.tag_id,
            record.antenna,
        )
        with self._lock:
            self._history.append(record)
            self._broadcaster.push(ViewerEvent.TAG_READ, record.to_wire())
        return record

    def _update_status(self, **changes: object) -> None:
        with self._lock:
            state = self._connectivity.update(**changes)
            if state is None:
                return
            self._broadcaster.push(ViewerEvent.MQTT_STATUS, state.to_wire())
        _logger.debug("Broker status changed: %s", state)

    def handle_connected(self) -> None:
        self._update_status(connected=True, last_error=None)

    def handle_disconnected(self) -> None:
        self._update_status(connected=False, last_error=None)

    def handle_reconnecting(self) -> None:
        _logger.debug("Broker reconnect attempt pending")

    def handle_error(self, message: str) -> None:
        _logger.error("Broker error: %s", message)
        self._update_status(last_error=message)

    # Viewer side

    def attach_viewer(self, channel: ViewerChannel) -> ViewerSession:
        """Register a viewer and queue its history and status snapshot."""
        if self._closed:
            raise RelayClosedError("relay has been shut down")
        with self._lock:
            history = [record.to_wire() for record in self._history.snapshot()]
            status = self._connectivity.get()
            return self._broadcaster.connect(
                channel,
                initial=(
                    ViewerMessage(event=ViewerEvent.HISTORY, data=history),
                    ViewerMessage(event=ViewerEvent.MQTT_STATUS, data=status.to_wire()),
                ),
            )

    def detach_viewer(self, session: ViewerSession) -> bool:
        return self._broadcaster.disconnect(session)
