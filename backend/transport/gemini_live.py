"""
WebSocket channel to the Gemini Live BidiGenerateContent endpoint.

Core model:
- The socket is SESSION-scoped: opened by connect(), closed by close().
- JSON text frames outbound; inbound frames may be text or binary JSON.
- All sends go through one asyncio.Lock, so microphone frames and tool
  responses from different tasks never interleave on the wire.
- No reconnects. A dead socket is reported once as TransportError and the
  owning session decides what happens next.

The credential travels in a request header and is never logged.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Mapping

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from observability.logger import log_event
from spec import LIVE_MAX_MESSAGE_BYTES, LIVE_WS_URL_DEFAULT
from transport.base import DuplexChannel, TransportError


class GeminiLiveChannel(DuplexChannel):
    """
    One WebSocket connection for one live session.

    Public interface:
    - open(): connect (raises TransportError)
    - send(message): serialized JSON send
    - receive(): async iterator of raw frames
    - close(): best-effort, idempotent
    """

    def __init__(
        self,
        *,
        credential: str,
        url: str = LIVE_WS_URL_DEFAULT,
        session_id: str | None = None,
        open_timeout_s: float = 10.0,
    ) -> None:
        self._credential = credential
        self._url = url
        self._session_id = session_id
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._send_lock = asyncio.Lock()
        self._closing = False

        self._frames_sent = 0
        self._frames_received = 0

    # -------------------------------------------------------------------------
    # DuplexChannel
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        if self._ws is not None:
            return

        headers = {"x-goog-api-key": self._credential}

        try:
            self._ws = await ws_connect(
                self._url,
                additional_headers=headers,
                max_size=LIVE_MAX_MESSAGE_BYTES,
                open_timeout=self._open_timeout_s,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            self._ws = None
            raise TransportError(f"live_connect_failed: {type(exc).__name__}: {exc}") from exc

        log_event({
            "event_type": "live_channel_opened",
            "session_id": self._session_id,
            "url": self._url,
        })

    async def send(self, message: Mapping[str, Any]) -> None:
        payload = json.dumps(message, separators=(",", ":"))

        async with self._send_lock:
            ws = self._ws
            if ws is None or self._closing:
                raise TransportError("live_channel_not_open")
            try:
                await ws.send(payload)
            except ConnectionClosed as exc:
                raise TransportError(f"live_send_failed: {exc}") from exc
            self._frames_sent += 1

    async def receive(self) -> AsyncIterator[str | bytes]:
        ws = self._ws
        if ws is None:
            raise TransportError("live_channel_not_open")

        try:
            async for raw in ws:
                self._frames_received += 1
                yield raw
        except ConnectionClosedOK:
            return
        except ConnectionClosed as exc:
            if self._closing:
                return
            raise TransportError(f"live_recv_failed: {exc}") from exc

    async def close(self) -> None:
        ws = self._ws
        if ws is None:
            return

        self._closing = True
        self._ws = None
        try:
            await ws.close()
        except (OSError, WebSocketException) as exc:
            log_event({
                "event_type": "live_channel_close_error",
                "session_id": self._session_id,
                "error": str(exc),
            })

        log_event({
            "event_type": "live_channel_closed",
            "session_id": self._session_id,
            "frames_sent": self._frames_sent,
            "frames_received": self._frames_received,
            "close_code": ws.close_code,
            "close_reason": ws.close_reason,
        })
