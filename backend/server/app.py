"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the process-wide HudStore and SessionProtocol
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from audio.base import CaptureSource, OutputSink
from config import AppConfig
from hud.events import HudEventType, LevelChanged
from hud.state import HudStore
from observability import logger
from observability.logger import log_event
from server.routes import register_routes
from session.protocol import SessionProtocol
from transport.base import DuplexChannel
from transport.gemini_live import GeminiLiveChannel


def create_app(
    config: AppConfig | None = None,
    *,
    hud: HudStore | None = None,
    protocol: SessionProtocol | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    config, hud and protocol are injectable so tests can run without
    sound devices or network.
    """
    config = config or AppConfig.load_from_env()
    logger.configure(enabled=config.enable_json_logs)

    hud = hud or HudStore()
    protocol = protocol or build_session_protocol(config, hud)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        log_event({"event_type": "server_started", "env": config.env})
        yield
        await protocol.close(reason="server_shutdown")
        log_event({"event_type": "server_stopped"})

    app = FastAPI(title="Live Voice HUD", lifespan=lifespan)

    app.state.config = config
    app.state.hud = hud
    app.state.protocol = protocol

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_session_protocol(config: AppConfig, hud: HudStore) -> SessionProtocol:
    """Wire the real sound-card devices and the Gemini Live channel."""

    def capture_factory() -> CaptureSource:
        # PortAudio is loaded on first use, not at import
        from audio.devices import MicrophoneCapture  # pylint: disable=import-outside-toplevel

        return MicrophoneCapture(
            device=config.input_device,
            device_rate_hz=config.capture_device_rate_hz,
        )

    def sink_factory() -> OutputSink:
        from audio.devices import SpeakerSink  # pylint: disable=import-outside-toplevel

        return SpeakerSink(
            device=config.output_device,
            on_level=lambda level: hud.apply(
                LevelChanged(event_type=HudEventType.LEVEL_CHANGED, level=level)
            ),
        )

    def channel_factory(credential: str, session_id: str) -> DuplexChannel:
        return GeminiLiveChannel(
            credential=credential,
            url=config.live_ws_url,
            session_id=session_id,
            open_timeout_s=config.handshake_timeout_s,
        )

    return SessionProtocol(
        hud=hud,
        capture_factory=capture_factory,
        sink_factory=sink_factory,
        channel_factory=channel_factory,
        model=config.live_model,
        system_directive=config.system_directive,
        enable_google_search=config.enable_google_search,
        handshake_timeout_s=config.handshake_timeout_s,
    )
