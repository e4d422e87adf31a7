"""Defaults shared across the relay."""

from __future__ import annotations

DEFAULT_BROKER_URL = "mqtt://test.mosquitto.org:1883"
DEFAULT_TOPIC = "rfid/#"
DEFAULT_CLIENT_ID = "rfid_subscriber_python"
DEFAULT_QOS = 1
DEFAULT_KEEPALIVE = 60

# Fixed delay between broker reconnect attempts (seconds).
DEFAULT_RECONNECT_INTERVAL = 1.0

DEFAULT_HISTORY_CAPACITY = 100

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

# Pending messages a viewer may lag behind before it is dropped.
DEFAULT_VIEWER_QUEUE_SIZE = 256

MQTT_PORT = 1883
MQTTS_PORT = 8883

# Placeholders for fields a reader left out of its payload.
UNKNOWN_GATE = "UNKNOWN"
NOT_AVAILABLE = "N/A"
