from __future__ import annotations

import asyncio

import pytest
from aiohttp import WSMsgType
from aiohttp import test_utils

from rfidrelay.relay import TagRelay
from rfidrelay.server import create_app


@pytest.mark.asyncio
async def test_websocket_viewer_gets_snapshot_then_live_reads(link, settle) -> None:
    relay = TagRelay(link)
    await relay.start()
    link.connect()
    link.deliver("rfid/G1", {"gate": "G1", "tag_id": "T0", "antenna": 1})

    async with test_utils.TestClient(test_utils.TestServer(create_app(relay))) as client:
        ws = await client.ws_connect("/ws")
        history = await ws.receive_json(timeout=2)
        status = await ws.receive_json(timeout=2)

        link.deliver("rfid/G2", {"gate": "G2", "tag_id": "T1"})
        live = await ws.receive_json(timeout=2)
        await ws.close()

        await settle(lambda: relay.broadcaster.viewer_count == 0)

    assert history["event"] == "history"
    assert [r["tagId"] for r in history["data"]] == ["T0"]
    assert status == {"event": "mqttStatus", "data": {"connected": True}}
    assert live["event"] == "tagRead"
    assert live["data"]["gate"] == "G2"
    assert live["data"]["antenna"] == "N/A"
    await relay.shutdown()


@pytest.mark.asyncio
async def test_shutdown_closes_open_websockets(link) -> None:
    relay = TagRelay(link)
    await relay.start()

    async with test_utils.TestClient(test_utils.TestServer(create_app(relay))) as client:
        ws = await client.ws_connect("/ws")
        await ws.receive_json(timeout=2)
        await ws.receive_json(timeout=2)

        shutdown = asyncio.create_task(relay.shutdown())
        msg = await ws.receive(timeout=2)
        await shutdown

        assert msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSED, WSMsgType.CLOSING)


@pytest.mark.asyncio
async def test_websocket_rejected_after_shutdown(link) -> None:
    relay = TagRelay(link)
    await relay.start()
    await relay.shutdown()

    async with test_utils.TestClient(test_utils.TestServer(create_app(relay))) as client:
        ws = await client.ws_connect("/ws")
        msg = await ws.receive(timeout=2)

        assert msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSED, WSMsgType.CLOSING)


@pytest.mark.asyncio
async def test_static_dashboard_is_served(link, tmp_path) -> None:
    (tmp_path / "index.html").write_text("<h1>RFID dashboard</h1>")
    (tmp_path / "app.js").write_text("console.log('hi');")
    relay = TagRelay(link)

    async with test_utils.TestClient(test_utils.TestServer(create_app(relay, static_dir=tmp_path))) as client:
        index = await client.get("/")
        script = await client.get("/app.js")

        assert index.status == 200
        assert "RFID dashboard" in await index.text()
        assert script.status == 200
