"""Broker connectivity and viewer message models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rfidrelay.models._base import RelayBaseModel


class ConnectivityState(RelayBaseModel):
    """Whether the broker link is up, plus the last reported broker error."""

    connected: bool = False
    last_error: str | None = Field(default=None, serialization_alias="error")


class ViewerEvent(StrEnum):
    HISTORY = "history"
    TAG_READ = "tagRead"
    MQTT_STATUS = "mqttStatus"


class ViewerMessage(BaseModel):
    """Envelope for every frame pushed to a viewer."""

    model_config = ConfigDict(frozen=True)

    event: ViewerEvent
    data: Any = None

    def encode(self) -> str:
        return self.model_dump_json()
