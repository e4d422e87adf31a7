"""Relay data models."""

from rfidrelay.models.status import ConnectivityState, ViewerEvent, ViewerMessage
from rfidrelay.models.tag_read import TagPayload, TagReadRecord

__all__ = [
    "ConnectivityState",
    "TagPayload",
    "TagReadRecord",
    "ViewerEvent",
    "ViewerMessage",
]
