"""rfidrelay - relay RFID tag reads from MQTT to live WebSocket viewers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("rfidrelay")
except PackageNotFoundError:
    __version__ = "0+local"
from rfidrelay._mqtt import BrokerLink, LinkHandlers, MqttBrokerLink
from rfidrelay.broadcast import Broadcaster, ViewerChannel, ViewerSession
from rfidrelay.config import RelayConfig
from rfidrelay.exceptions import (
    BrokerLinkError,
    PayloadDecodeError,
    RelayClosedError,
    RelayConfigError,
    RelayError,
    ViewerSendError,
)
from rfidrelay.ingestion.normalize import TagReadNormalizer
from rfidrelay.models import ConnectivityState, TagReadRecord, ViewerEvent, ViewerMessage
from rfidrelay.relay import TagRelay
from rfidrelay.state.history import HistoryBuffer

__all__ = [
    "__version__",
    "Broadcaster",
    "BrokerLink",
    "BrokerLinkError",
    "ConnectivityState",
    "HistoryBuffer",
    "LinkHandlers",
    "MqttBrokerLink",
    "PayloadDecodeError",
    "RelayClosedError",
    "RelayConfig",
    "RelayConfigError",
    "RelayError",
    "TagReadNormalizer",
    "TagReadRecord",
    "TagRelay",
    "ViewerChannel",
    "ViewerEvent",
    "ViewerMessage",
    "ViewerSendError",
    "ViewerSession",
]
