"""Command-line entry point: run the relay until SIGINT/SIGTERM."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any

from rfidrelay._mqtt import MqttBrokerLink
from rfidrelay.broadcast import Broadcaster
from rfidrelay.config import RelayConfig
from rfidrelay.exceptions import RelayError
from rfidrelay.relay import TagRelay
from rfidrelay.server import RelayServer

_logger = logging.getLogger("rfidrelay")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rfid-relay",
        description="Relay RFID tag reads from an MQTT broker to WebSocket viewers.",
    )
    parser.add_argument("--broker", help="Broker URL, e.g. mqtt://localhost:1883.")
    parser.add_argument("--topic", help="Subscription pattern (default: rfid/#).")
    parser.add_argument("--host", help="Interface to bind the viewer server to.")
    parser.add_argument("--port", type=int, help="Viewer server port (default: $PORT or 3000).")
    parser.add_argument("--static-dir", help="Directory of dashboard assets served at /.")
    parser.add_argument("--capacity", type=int, help="Number of recent tag reads kept.")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


def _config_from_args(args: argparse.Namespace) -> RelayConfig:
    overrides: dict[str, Any] = {}
    for arg_name, field_name in (
        ("broker", "broker_url"),
        ("topic", "topic"),
        ("host", "host"),
        ("port", "port"),
        ("static_dir", "static_dir"),
        ("capacity", "history_capacity"),
    ):
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value
    return RelayConfig.from_env(**overrides)


async def run(config: RelayConfig) -> None:
    """Start the relay and its viewer server, then wait for a stop signal."""
    loop = asyncio.get_running_loop()
    link = MqttBrokerLink(config, loop=loop)
    relay = TagRelay(
        link,
        topic=config.topic,
        capacity=config.history_capacity,
        broadcaster=Broadcaster(queue_size=config.viewer_queue_size),
    )
    server = RelayServer(relay, host=config.host, port=config.port, static_dir=config.static_dir)

    stop = asyncio.Event()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:  # pragma: no cover - platform dependent
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop.set))

    await relay.start()
    try:
        await server.start()
        await stop.wait()
        _logger.info("Stopping server...")
    finally:
        await relay.shutdown()
        await server.stop()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _config_from_args(args)
    except RelayError as exc:
        print(f"rfid-relay: {exc}", file=sys.stderr)
        return 2

    _logger.debug("Relay settings: %s", config.redacted())
    try:
        asyncio.run(run(config))
    except RelayError as exc:
        _logger.error("Relay failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
