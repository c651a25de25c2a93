# pylint: disable=missing-module-docstring,missing-function-docstring

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from websockets.asyncio.server import ServerConnection, serve

import transport.gemini_live as live_mod
from transport.base import TransportError
from transport.gemini_live import GeminiLiveChannel


@pytest.fixture(name="emitted", autouse=True)
def _emitted(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    monkeypatch.setattr(live_mod, "log_event", events.append)
    return events


def test_roundtrip_against_local_server(emitted: list[dict[str, Any]]):
    received: list[dict[str, Any]] = []
    keys: list[str | None] = []

    async def handler(ws: ServerConnection) -> None:
        keys.append(ws.request.headers.get("x-goog-api-key"))
        async for msg in ws:
            received.append(json.loads(msg))
            if "setup" in received[-1]:
                await ws.send(json.dumps({"setupComplete": {}}))
                await ws.send(b'{"serverContent": {"turnComplete": true}}')
                await ws.close()

    async def scenario() -> list[str | bytes]:
        async with serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            channel = GeminiLiveChannel(credential="secret-key", url=f"ws://127.0.0.1:{port}")

            await channel.open()
            await channel.send({"setup": {"model": "m"}})
            frames = [raw async for raw in channel.receive()]
            await channel.close()
            return frames

    frames = asyncio.run(scenario())

    assert keys == ["secret-key"]
    assert received == [{"setup": {"model": "m"}}]
    assert json.loads(frames[0]) == {"setupComplete": {}}
    assert isinstance(frames[1], bytes)
    assert all("secret-key" not in json.dumps(e, default=str) for e in emitted)


def test_unreachable_endpoint_raises_transport_error():
    channel = GeminiLiveChannel(credential="k", url="ws://127.0.0.1:9", open_timeout_s=1.0)

    with pytest.raises(TransportError):
        asyncio.run(channel.open())


def test_send_before_open_raises_transport_error():
    channel = GeminiLiveChannel(credential="k")

    with pytest.raises(TransportError):
        asyncio.run(channel.send({"realtimeInput": {}}))


def test_close_is_idempotent():
    asyncio.run(GeminiLiveChannel(credential="k").close())
