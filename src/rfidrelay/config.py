"""Relay configuration."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from rfidrelay._constants import (
    DEFAULT_BROKER_URL,
    DEFAULT_CLIENT_ID,
    DEFAULT_HISTORY_CAPACITY,
    DEFAULT_HOST,
    DEFAULT_KEEPALIVE,
    DEFAULT_PORT,
    DEFAULT_QOS,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_TOPIC,
    DEFAULT_VIEWER_QUEUE_SIZE,
    MQTT_PORT,
    MQTTS_PORT,
)
from rfidrelay.exceptions import RelayConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class BrokerAddress:
    """Resolved broker endpoint."""

    host: str
    port: int
    tls: bool = False


def parse_broker_url(raw_broker: str) -> BrokerAddress:
    """Resolve ``mqtt://host[:port]``, ``mqtts://host[:port]`` or ``host[:port]``."""
    value = raw_broker.strip()
    if not value:
        raise RelayConfigError("Broker value is empty")

    tls = False
    if "://" in value:
        scheme, value = value.split("://", 1)
        scheme = scheme.lower()
        if scheme in {"mqtts", "ssl", "tls"}:
            tls = True
        elif scheme not in {"mqtt", "tcp"}:
            raise RelayConfigError(f"Unsupported broker scheme: {scheme}")
    if "/" in value:
        value = value.split("/", 1)[0]

    host, _, maybe_port = value.rpartition(":")
    if host and maybe_port.isdigit():
        return BrokerAddress(host=host, port=int(maybe_port), tls=tls)
    if not value:
        raise RelayConfigError(f"Broker host missing in {raw_broker!r}")
    return BrokerAddress(host=value, port=MQTTS_PORT if tls else MQTT_PORT, tls=tls)


@dataclasses.dataclass(frozen=True)
class RelayConfig:
    """Relay configuration.

    All values are static inputs read once at startup.

    Parameters
    ----------
    broker_url : str
        Broker endpoint, e.g. ``mqtt://test.mosquitto.org:1883``.
    topic : str
        Subscription pattern covering every reader topic.
    client_id : str
        MQTT client identifier.
    qos : int
        Subscription quality of service.
    clean_session : bool
        Start each connection with a clean broker session.
    username : str or None
        Optional broker username.
    password : str or None
        Optional broker password.
    keepalive : int
        MQTT keepalive in seconds.
    reconnect_interval : float
        Fixed delay in seconds between reconnect attempts.
    history_capacity : int
        Number of recent tag reads kept for new viewers.
    host : str
        Interface the viewer server binds to.
    port : int
        Port the viewer server listens on.
    static_dir : str or None
        Directory of dashboard assets served at ``/``.
    viewer_queue_size : int
        Pending messages a viewer may lag behind before it is dropped.
    """

    broker_url: str = DEFAULT_BROKER_URL
    topic: str = DEFAULT_TOPIC
    client_id: str = DEFAULT_CLIENT_ID
    qos: int = DEFAULT_QOS
    clean_session: bool = True
    username: str | None = None
    password: str | None = None
    keepalive: int = DEFAULT_KEEPALIVE
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL
    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    static_dir: str | None = None
    viewer_queue_size: int = DEFAULT_VIEWER_QUEUE_SIZE

    def __post_init__(self) -> None:
        if not self.topic.strip():
            raise RelayConfigError("topic must be non-empty")
        if self.qos not in (0, 1, 2):
            raise RelayConfigError(f"qos must be 0, 1 or 2, got {self.qos}")
        if self.reconnect_interval <= 0:
            raise RelayConfigError("reconnect_interval must be positive")
        if self.history_capacity < 1:
            raise RelayConfigError("history_capacity must be at least 1")
        if self.viewer_queue_size < 1:
            raise RelayConfigError("viewer_queue_size must be at least 1")
        if not 0 <= self.port <= 65535:
            raise RelayConfigError(f"port out of range: {self.port}")

    @property
    def broker(self) -> BrokerAddress:
        return parse_broker_url(self.broker_url)

    def redacted(self) -> dict[str, Any]:
        """Settings as a dict with the broker password masked, for logging."""
        values = dataclasses.asdict(self)
        if values["password"] is not None:
            values["password"] = "<redacted>"
        return values

    @classmethod
    def from_env(cls, **overrides: Any) -> RelayConfig:
        """Create configuration from environment variables.

        Reads optional ``RFID_*`` variables and the conventional ``PORT``.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RelayConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "RFID_MQTT_BROKER": "broker_url",
            "RFID_MQTT_TOPIC": "topic",
            "RFID_MQTT_CLIENT_ID": "client_id",
            "RFID_MQTT_USERNAME": "username",
            "RFID_MQTT_PASSWORD": "password",
            "RFID_HOST": "host",
            "RFID_STATIC_DIR": "static_dir",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Numeric values, handled separately
        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "RFID_MQTT_QOS": ("qos", int),
            "RFID_MQTT_KEEPALIVE": ("keepalive", int),
            "RFID_RECONNECT_INTERVAL": ("reconnect_interval", float),
            "RFID_HISTORY_CAPACITY": ("history_capacity", int),
            "RFID_VIEWER_QUEUE_SIZE": ("viewer_queue_size", int),
            "PORT": ("port", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise RelayConfigError(f"Invalid {env_key}={val!r}") from exc

        if "clean_session" not in overrides:
            config_kwargs["clean_session"] = _env_bool(env.get("RFID_MQTT_CLEAN_SESSION"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
