"""Tag read models."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, ConfigDict, Field

from rfidrelay.models._base import RelayBaseModel


def _text_or_none(value: Any) -> Any:
    """Render numeric identifiers as text; leave everything else to validation."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


Text = Annotated[str | None, BeforeValidator(_text_or_none)]
"""Optional string field that also accepts numeric identifiers."""

Antenna = int | float | str
"""Antenna identifier, kept as the reader sent it."""


class TagPayload(RelayBaseModel):
    """Inbound reader payload.

    Keys arrive in snake_case; every field is optional.
    """

    model_config = ConfigDict(alias_generator=None, populate_by_name=False)

    gate: Text = None
    tag_id: Text = None
    antenna: Antenna | None = None
    event_time: Text = Field(default=None, validation_alias="datetime")


class TagReadRecord(RelayBaseModel):
    """One normalized tag read, as stored in history and pushed to viewers."""

    gate: str
    tag_id: str
    antenna: Antenna
    event_time: str = Field(..., description="Device timestamp (display only, not ordered)")
    received_at: int = Field(..., description="Relay receipt time in epoch milliseconds")
