from __future__ import annotations

import json

import pytest

from rfidrelay.exceptions import PayloadDecodeError
from rfidrelay.ingestion.normalize import TagReadNormalizer, decode_tag_payload, epoch_ms_to_iso

_NOW = 1_704_067_200.125  # 2024-01-01T00:00:00.125Z


def _normalizer(now: float = _NOW) -> TagReadNormalizer:
    return TagReadNormalizer(clock=lambda: now)


def test_full_payload_is_kept_as_sent() -> None:
    payload = {"gate": "G1", "tag_id": "T123", "antenna": 2, "datetime": "2024-01-01T00:00:00Z"}

    record = _normalizer().normalize("rfid/G1", json.dumps(payload).encode())

    assert record.gate == "G1"
    assert record.tag_id == "T123"
    assert record.antenna == 2
    assert record.event_time == "2024-01-01T00:00:00Z"
    assert record.received_at == 1_704_067_200_125


def test_missing_fields_get_defaults() -> None:
    record = _normalizer().normalize("rfid/x", b'{"tag_id": "T9"}')

    assert record.tag_id == "T9"
    assert record.gate == "UNKNOWN"
    assert record.antenna == "N/A"
    assert record.event_time == "2024-01-01T00:00:00.125Z"
    assert record.event_time == epoch_ms_to_iso(record.received_at)


def test_empty_object_gets_every_default() -> None:
    record = _normalizer().normalize("rfid/x", b"{}")

    assert (record.gate, record.tag_id, record.antenna) == ("UNKNOWN", "N/A", "N/A")


def test_null_and_empty_strings_count_as_absent() -> None:
    record = _normalizer().normalize("rfid/x", b'{"gate": "", "tag_id": null, "antenna": ""}')

    assert record.gate == "UNKNOWN"
    assert record.tag_id == "N/A"
    assert record.antenna == "N/A"


def test_whitespace_values_are_kept_as_sent() -> None:
    record = _normalizer().normalize("rfid/x", b'{"gate": " ", "tag_id": "   "}')

    assert record.gate == " "
    assert record.tag_id == "   "


def test_antenna_zero_and_numeric_identifiers_are_kept() -> None:
    record = _normalizer().normalize("rfid/x", b'{"gate": 7, "tag_id": 12345, "antenna": 0}')

    assert record.gate == "7"
    assert record.tag_id == "12345"
    assert record.antenna == 0


def test_unknown_fields_are_ignored() -> None:
    record = _normalizer().normalize("rfid/x", b'{"tag_id": "T1", "rssi": -40}')

    assert record.tag_id == "T1"
    assert "rssi" not in record.to_wire()


def test_wire_shape_uses_camel_case_keys() -> None:
    record = _normalizer().normalize("rfid/G1", b'{"gate": "G1", "tag_id": "T1", "antenna": "A"}')

    assert record.to_wire() == {
        "gate": "G1",
        "tagId": "T1",
        "antenna": "A",
        "eventTime": "2024-01-01T00:00:00.125Z",
        "receivedAt": 1_704_067_200_125,
    }


@pytest.mark.parametrize(
    "payload",
    [
        b"{not json",
        b"",
        b"\xff\xfe\x00",
        b"[1, 2, 3]",
        b"null",
        b'"just a string"',
        b'{"gate": {"nested": true}}',
        b'{"antenna": [1, 2]}',
        b'{"tag_id": "T1", "antenna": NaN}',
        b'{"antenna": Infinity}',
        b'{"antenna": -Infinity}',
    ],
)
def test_undecodable_payloads_raise_with_topic(payload: bytes) -> None:
    with pytest.raises(PayloadDecodeError) as excinfo:
        decode_tag_payload("rfid/broken", payload)

    assert excinfo.value.topic == "rfid/broken"


def test_received_at_never_goes_backwards() -> None:
    times = iter([100.0, 99.0, 101.5])
    normalizer = TagReadNormalizer(clock=lambda: next(times))

    stamps = [normalizer.normalize("rfid/x", b"{}").received_at for _ in range(3)]

    assert stamps == [100_000, 100_000, 101_500]


def test_epoch_ms_to_iso_matches_javascript_format() -> None:
    assert epoch_ms_to_iso(0) == "1970-01-01T00:00:00.000Z"
    assert epoch_ms_to_iso(1_704_067_200_999) == "2024-01-01T00:00:00.999Z"


@pytest.mark.parametrize("field", ["gate", "tag_id"])
@pytest.mark.parametrize("value", [{"id": 1}, ["G1"], True])
def test_non_text_identifiers_are_malformed(field: str, value: object) -> None:
    payload = json.dumps({field: value}).encode()

    with pytest.raises(PayloadDecodeError):
        _normalizer().normalize("rfid/x", payload)


def test_only_datetime_key_sets_event_time() -> None:
    record = _normalizer().normalize("rfid/x", b'{"event_time": "2020-05-05T00:00:00Z"}')

    assert record.event_time == "2024-01-01T00:00:00.125Z"
