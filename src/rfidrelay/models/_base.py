"""Base model for relay payloads.

Every relay model inherits from :class:`RelayBaseModel` which provides:

* ``alias_generator=to_camel`` so snake_case fields serialize to the
  camelCase keys viewers expect (``tagId``, ``receivedAt``).
* A ``model_validator(mode="before")`` that strips placeholder values
  (``None``, ``""``) so the field default is used.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

# Values readers send for "not available".
_SENTINELS = frozenset({""})


def clean_dict(values: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` and placeholder strings from *values*."""
    cleaned: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, str) and value in _SENTINELS:
            continue
        cleaned[key] = value
    return cleaned


class RelayBaseModel(BaseModel):
    """Base for relay models.

    Models are immutable once built; they are shared read-only between
    the history buffer and every viewer.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return clean_dict(values)

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON-compatible shape sent to viewers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
