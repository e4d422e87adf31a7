from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import paho.mqtt.client as mqtt
import pytest

from rfidrelay._mqtt import LinkHandlers, MessageHandler


class FakeBrokerLink:
    """In-memory broker link driven directly by tests."""

    def __init__(self) -> None:
        self.handlers = LinkHandlers()
        self.subscriptions: dict[str, MessageHandler] = {}
        self.started = False
        self.stopped = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def on_lifecycle(self, handlers: LinkHandlers) -> None:
        self.handlers = handlers

    def subscribe(self, pattern: str, on_message: MessageHandler) -> None:
        self.subscriptions[pattern] = on_message

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def connect(self) -> None:
        self._connected = True
        self.handlers.on_connected()

    def drop(self, *, failed_attempts: int = 1) -> None:
        self._connected = False
        self.handlers.on_disconnected()
        for _ in range(failed_attempts):
            self.handlers.on_reconnecting()

    def deliver(self, topic: str, payload: bytes | dict[str, Any]) -> None:
        body = json.dumps(payload).encode() if isinstance(payload, dict) else payload
        for pattern, handler in self.subscriptions.items():
            if mqtt.topic_matches_sub(pattern, topic):
                handler(topic, body)


class RecordingChannel:
    """Viewer channel that records decoded frames."""

    def __init__(self, *, fail: bool = False, blocked: bool = False) -> None:
        self.frames: list[dict[str, Any]] = []
        self.closed = False
        self.fail = fail
        self._release = asyncio.Event()
        if not blocked:
            self._release.set()

    async def send(self, message: str) -> None:
        if self.fail:
            raise ConnectionResetError("viewer went away")
        await self._release.wait()
        self.frames.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True

    def unblock(self) -> None:
        self._release.set()

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        if name is None:
            return list(self.frames)
        return [frame for frame in self.frames if frame["event"] == name]


@pytest.fixture
def link() -> FakeBrokerLink:
    return FakeBrokerLink()


@pytest.fixture
def channel_factory() -> Callable[..., RecordingChannel]:
    return RecordingChannel


@pytest.fixture
def settle() -> Callable[..., Awaitable[None]]:
    """Wait until *predicate* holds, letting viewer sender tasks run."""

    async def _settle(predicate: Callable[[], bool] | None = None, timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            await asyncio.sleep(0.001)
            if predicate is None or predicate():
                return
            if loop.time() > deadline:
                raise AssertionError("condition not reached before timeout")

    return _settle
