"""aiohttp server exposing the relay to browser viewers over WebSocket."""

from __future__ import annotations

import logging
from pathlib import Path

from aiohttp import WSMsgType, web

from rfidrelay.exceptions import RelayClosedError
from rfidrelay.relay import TagRelay

_logger = logging.getLogger(__name__)

RELAY_KEY = web.AppKey("relay", TagRelay)
STATIC_DIR_KEY = web.AppKey("static_dir", Path)


class WebSocketChannel:
    """:class:`~rfidrelay.broadcast.ViewerChannel` backed by an aiohttp WebSocket."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    async def send(self, message: str) -> None:
        await self._ws.send_str(message)

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    relay = request.app[RELAY_KEY]
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    try:
        session = relay.attach_viewer(WebSocketChannel(ws))
    except RelayClosedError:
        await ws.close()
        return ws

    try:
        # Viewers only listen; inbound frames are ignored.
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                _logger.warning("Viewer connection error: %s", ws.exception())
                break
    finally:
        relay.detach_viewer(session)
    return ws


async def index_handler(request: web.Request) -> web.StreamResponse:
    static_dir = request.app[STATIC_DIR_KEY]
    return web.FileResponse(static_dir / "index.html")


def create_app(relay: TagRelay, *, static_dir: str | Path | None = None) -> web.Application:
    """Build the viewer application: ``/ws`` plus optional static assets at ``/``."""
    app = web.Application()
    app[RELAY_KEY] = relay
    app.router.add_get("/ws", websocket_handler)

    if static_dir is not None:
        root = Path(static_dir)
        if root.is_dir():
            app[STATIC_DIR_KEY] = root
            app.router.add_get("/", index_handler)
            app.router.add_static("/", root)
        else:
            _logger.warning("Static directory %s not found; serving WebSocket only", root)
    return app


class RelayServer:
    """Run :func:`create_app` on a TCP site."""

    def __init__(
        self,
        relay: TagRelay,
        *,
        host: str,
        port: int,
        static_dir: str | Path | None = None,
    ) -> None:
        self._app = create_app(relay, static_dir=static_dir)
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def app(self) -> web.Application:
        return self._app

    async def start(self) -> None:
        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        await site.start()
        self._runner = runner
        _logger.info("Web server running at http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        runner = self._runner
        self._runner = None
        if runner is None:
            return
        await runner.cleanup()
