#!/usr/bin/env python3
"""Publish sample RFID tag reads to the broker.

Handy for exercising a running relay without physical readers:

    python scripts/publish_tag_reads.py --broker mqtt://localhost:1883 --count 20
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import paho.mqtt.client as mqtt  # noqa: E402

from rfidrelay.config import RelayConfig, parse_broker_url  # noqa: E402

_LOG = logging.getLogger("publish_tag_reads")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish sample tag reads under rfid/<gate>.",
    )
    parser.add_argument("--broker", default=RelayConfig().broker_url, help="Broker URL.")
    parser.add_argument("--gates", default="G1,G2,G3", help="Comma separated gate names.")
    parser.add_argument("--count", type=int, default=10, help="Messages to send (0 = forever).")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between messages.")
    parser.add_argument(
        "--malformed-every",
        type=int,
        default=0,
        help="Send a non-JSON payload every N messages (0 = never).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _sample_payload(gate: str) -> dict[str, Any]:
    return {
        "gate": gate,
        "tag_id": f"E200{random.randrange(16**8):08X}",
        "antenna": random.randint(1, 4),
        "datetime": datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z"),
    }


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    broker = parse_broker_url(args.broker)
    gates = [gate.strip() for gate in args.gates.split(",") if gate.strip()]
    if not gates:
        print("[publish] --gates is empty", file=sys.stderr)
        return 2

    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"rfid_publisher_{random.randrange(16**6):06x}",
        protocol=mqtt.MQTTv311,
    )
    client.enable_logger(_LOG)
    if broker.tls:
        client.tls_set()

    print(f"[publish] Connecting to {broker.host}:{broker.port}...")
    try:
        client.connect(broker.host, broker.port, keepalive=60)
    except OSError as exc:
        print(f"[publish] Connect failed: {exc}", file=sys.stderr)
        return 2
    client.loop_start()

    sent = 0
    try:
        while args.count == 0 or sent < args.count:
            sent += 1
            gate = random.choice(gates)
            topic = f"rfid/{gate}"
            if args.malformed_every and sent % args.malformed_every == 0:
                body = "{not json"
            else:
                body = json.dumps(_sample_payload(gate))
            info = client.publish(topic, body, qos=1)
            info.wait_for_publish(timeout=5.0)
            print(f"[publish] msg#{sent} topic={topic} body={body}")
            time.sleep(args.interval)
    except KeyboardInterrupt:
        pass
    finally:
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    print(f"[publish] Sent {sent} message(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
