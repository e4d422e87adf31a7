"""Tag read normalization.

Turns a raw broker message into a :class:`TagReadRecord`. Only structural
decodability is checked; field values are accepted as-is once defaults
are applied.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from rfidrelay._constants import NOT_AVAILABLE, UNKNOWN_GATE
from rfidrelay.exceptions import PayloadDecodeError
from rfidrelay.models.tag_read import TagPayload, TagReadRecord


def epoch_ms_to_iso(value: int) -> str:
    """Render epoch milliseconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    seconds, millis = divmod(value, 1000)
    moment = datetime.fromtimestamp(seconds, tz=UTC).replace(microsecond=millis * 1000)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def decode_tag_payload(topic: str, payload: bytes | str) -> TagPayload:
    """Decode a raw message body into a :class:`TagPayload`.

    Raises :class:`PayloadDecodeError` when the body is not a JSON object
    or a field has an unusable shape (e.g. a nested object for ``gate``).
    """
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        parsed: Any = json.loads(text, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise PayloadDecodeError(f"Invalid JSON: {exc}", topic=topic) from exc

    if not isinstance(parsed, dict):
        raise PayloadDecodeError(
            f"Payload decoded to {type(parsed).__name__}, expected an object",
            topic=topic,
        )

    try:
        return TagPayload.model_validate(parsed)
    except ValidationError as exc:
        raise PayloadDecodeError(
            f"Unusable payload fields: {exc.error_count()} error(s)",
            topic=topic,
        ) from exc


class TagReadNormalizer:
    """Build tag read records and stamp their receipt time.

    ``received_at`` never decreases between calls, even if the wall clock
    steps backwards.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_received_at = 0
        self._lock = threading.Lock()

    def _stamp(self) -> int:
        now = int(self._clock() * 1000)
        with self._lock:
            if now < self._last_received_at:
                now = self._last_received_at
            self._last_received_at = now
        return now

    def normalize(self, topic: str, payload: bytes | str) -> TagReadRecord:
        decoded = decode_tag_payload(topic, payload)
        received_at = self._stamp()
        return TagReadRecord(
            gate=decoded.gate if decoded.gate is not None else UNKNOWN_GATE,
            tag_id=decoded.tag_id if decoded.tag_id is not None else NOT_AVAILABLE,
            antenna=decoded.antenna if decoded.antenna is not None else NOT_AVAILABLE,
            event_time=decoded.event_time if decoded.event_time is not None else epoch_ms_to_iso(received_at),
            received_at=received_at,
        )
