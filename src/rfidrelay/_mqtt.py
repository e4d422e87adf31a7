"""Broker link: MQTT connection lifecycle and inbound messages."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import paho.mqtt.client as mqtt

from rfidrelay.config import RelayConfig
from rfidrelay.exceptions import BrokerLinkError

MessageHandler = Callable[[str, bytes], None]


def _noop(*_args: Any) -> None:
    return None


@dataclass(frozen=True)
class LinkHandlers:
    """Lifecycle callbacks a broker link reports to.

    Every callback is invoked on the relay's event loop, one at a time,
    in the order the underlying transitions happened.
    """

    on_connected: Callable[[], None] = _noop
    on_disconnected: Callable[[], None] = _noop
    on_reconnecting: Callable[[], None] = _noop
    on_error: Callable[[str], None] = _noop


class BrokerLink(Protocol):
    """Structural broker interface used by the relay.

    Having a protocol here makes it easy to pass in-memory test doubles
    while keeping the production implementation (`MqttBrokerLink`) concrete.
    """

    @property
    def connected(self) -> bool: ...

    def on_lifecycle(self, handlers: LinkHandlers) -> None: ...

    def subscribe(self, pattern: str, on_message: MessageHandler) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class MqttBrokerLink:
    """Threaded paho-mqtt link that replays callbacks onto an asyncio loop.

    paho's network thread owns the socket and the reconnect loop: after an
    unexpected disconnect it waits ``reconnect_interval`` seconds between
    attempts, forever, until :meth:`stop` is called.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._broker = config.broker
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._handlers = LinkHandlers()
        self._subscriptions: dict[str, MessageHandler] = {}
        self._pending_subscribes: dict[int, str] = {}
        self._lock = threading.Lock()
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def is_running(self) -> bool:
        """Whether the network loop is active."""
        return self._running

    def on_lifecycle(self, handlers: LinkHandlers) -> None:
        self._handlers = handlers

    def subscribe(self, pattern: str, on_message: MessageHandler) -> None:
        """Register *on_message* for *pattern*; (re)applied on every connect."""
        with self._lock:
            self._subscriptions[pattern] = on_message
        client = self._client
        if client is not None and self._connected:
            self._send_subscribe(client, pattern)

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._config.client_id,
            clean_session=self._config.clean_session,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if self._config.username:
            client.username_pw_set(self._config.username, self._config.password)
        if self._broker.tls:
            client.tls_set()
        interval = self._config.reconnect_interval
        client.reconnect_delay_set(min_delay=interval, max_delay=interval)

        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        return client

    async def start(self) -> None:
        """Begin connecting; retries continue in the background until stopped."""
        if self._running:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        self._logger.info(
            "Connecting to MQTT broker at %s:%s", self._broker.host, self._broker.port
        )
        client = self._build_client()
        try:
            client.connect_async(self._broker.host, self._broker.port, keepalive=self._config.keepalive)
            client.loop_start()
        except (OSError, ValueError) as exc:
            raise BrokerLinkError(f"Could not start MQTT client: {exc}") from exc

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    async def stop(self) -> None:
        """Disconnect and join the network thread."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        loop = self._loop or asyncio.get_running_loop()
        await loop.run_in_executor(None, self._shutdown_client, client, was_running)

    def _shutdown_client(self, client: mqtt.Client, was_running: bool) -> None:
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def _dispatch(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._invoke, callback, *args)
        except RuntimeError:
            self._logger.debug("Event loop closed; dropping broker callback", exc_info=True)

    def _invoke(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            self._logger.exception("Broker callback %s failed", getattr(callback, "__name__", callback))

    def _send_subscribe(self, client: mqtt.Client, pattern: str) -> None:
        self._logger.info("Subscribing to topic: %s", pattern)
        result, mid = client.subscribe(pattern, qos=self._config.qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._dispatch(self._handlers.on_error, f"Subscription to {pattern} failed: {mqtt.error_string(result)}")
            return
        with self._lock:
            self._pending_subscribes[mid] = pattern

    # paho callbacks; these run on the network thread.

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.is_failure:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            self._dispatch(self._handlers.on_error, f"Connection refused: {reason_code}")
            return
        self._connected = True
        self._logger.info("Connected successfully to broker")
        self._dispatch(self._handlers.on_connected)

        with self._lock:
            patterns = list(self._subscriptions)
        for pattern in patterns:
            self._send_subscribe(client, pattern)

    def _on_connect_fail(self, _client: mqtt.Client, _userdata: Any) -> None:
        if not self._running:
            return
        self._logger.info("Attempting to reconnect...")
        self._dispatch(self._handlers.on_reconnecting)

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        was_connected = self._connected
        self._connected = False
        if not self._running:
            return
        if was_connected:
            self._logger.info("Disconnected from broker: %s", reason_code)
            self._dispatch(self._handlers.on_disconnected)
        self._logger.info("Attempting to reconnect...")
        self._dispatch(self._handlers.on_reconnecting)

    def _on_subscribe(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        _properties: Any,
    ) -> None:
        with self._lock:
            pattern = self._pending_subscribes.pop(mid, "<unknown>")
        failures = [rc for rc in reason_code_list if rc.is_failure]
        if failures:
            self._logger.error("Subscription error for %s: %s", pattern, failures[0])
            self._dispatch(self._handlers.on_error, f"Subscription to {pattern} rejected: {failures[0]}")
            return
        self._logger.info("Listening for RFID tag reads on %s", pattern)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        with self._lock:
            handlers = [
                handler
                for pattern, handler in self._subscriptions.items()
                if mqtt.topic_matches_sub(pattern, msg.topic)
            ]
        for handler in handlers:
            self._dispatch(handler, msg.topic, bytes(msg.payload))
