"""
Route registration for the HUD bridge.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Map session errors onto HTTP status codes
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket

from hud.events import HudEvent
from hud.state import HudStore
from observability.logger import log_event
from session.errors import CaptureError, HandshakeError, SessionStateError
from session.protocol import SessionProtocol


def _hud_payload(hud: HudStore, protocol: SessionProtocol) -> dict[str, Any]:
    payload = hud.snapshot()
    payload["session"] = {
        "state": protocol.state.value,
        "lastError": protocol.last_error,
    }
    return payload


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/hud")
    async def hud_snapshot() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _hud_payload(app.state.hud, app.state.protocol)

    @app.post("/session/connect")
    async def session_connect() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        credential = app.state.config.api_key
        if not credential:
            raise HTTPException(status_code=400, detail="no credential configured")

        protocol: SessionProtocol = app.state.protocol
        try:
            session = await protocol.connect(credential)
        except SessionStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except (CaptureError, HandshakeError) as exc:
            raise HTTPException(
                status_code=503,
                detail=f"{type(exc).__name__}: {exc}",
            ) from exc

        return {"sessionId": session.session_id, "state": protocol.state.value}

    @app.post("/session/close")
    async def session_close() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        protocol: SessionProtocol = app.state.protocol
        await protocol.close(reason="api_close")
        return {"state": protocol.state.value}

    @app.websocket("/hud/stream")
    async def hud_stream(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        hud: HudStore = app.state.hud
        protocol: SessionProtocol = app.state.protocol

        # Coalesces bursts (level meter) into one pending push
        changed: asyncio.Queue[None] = asyncio.Queue(maxsize=1)

        def _on_event(_: HudEvent) -> None:
            if not changed.full():
                changed.put_nowait(None)

        unsubscribe = hud.subscribe(_on_event)
        disconnected = asyncio.create_task(_wait_for_disconnect(ws))

        try:
            await ws.send_json(_hud_payload(hud, protocol))

            while True:
                next_change = asyncio.create_task(changed.get())
                done, _ = await asyncio.wait(
                    {next_change, disconnected},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if disconnected in done:
                    next_change.cancel()
                    break
                await ws.send_json(_hud_payload(hud, protocol))

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "HUD_STREAM_ERROR",
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            unsubscribe()
            disconnected.cancel()


async def _wait_for_disconnect(ws: WebSocket) -> None:
    """Consume (and ignore) client frames until the socket closes."""
    while True:
        msg = await ws.receive()
        if msg["type"] == "websocket.disconnect":
            return
