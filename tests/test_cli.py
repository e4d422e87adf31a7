from __future__ import annotations

from rfidrelay.__main__ import _config_from_args, _parse_args


def test_cli_flags_override_environment(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RFID_MQTT_TOPIC", "readers/#")

    args = _parse_args(["--broker", "mqtt://localhost:1884", "--port", "9000", "--capacity", "10"])
    config = _config_from_args(args)

    assert config.broker_url == "mqtt://localhost:1884"
    assert config.port == 9000
    assert config.history_capacity == 10
    assert config.topic == "readers/#"


def test_cli_defaults_fall_back_to_environment(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "8080")

    config = _config_from_args(_parse_args([]))

    assert config.port == 8080
    assert config.topic == "rfid/#"
