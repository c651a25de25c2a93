"""
Live session protocol.

Responsibilities:
- Own the single Session and its lifecycle state
  (DISCONNECTED -> CONNECTING -> OPEN -> DISCONNECTED)
- Bring up capture, output and the remote handshake on connect()
- Pump captured audio through PcmFramer onto the channel
- Decode inbound peer messages and route them, in a fixed order, to
  TranscriptAccumulator, PlaybackScheduler and ToolDispatcher
- Send one tool response per tool call without blocking the receive path
- Tear everything down on close() or transport failure

NOT responsible for:
- Reconnecting (a new session is always an explicit connect())
- Rendering (HudStore consumers do that)
- Wire encoding details (protocol.live_messages)
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import numpy as np

from audio.base import CaptureSource, OutputSink
from audio.frames import AudioChunk
from audio.framer import PcmFramer
from audio.pcm import pcm16le_to_float32, resample
from hud.events import ConnectionChanged, HudEventType, Sender
from hud.state import HudStore
from observability.logger import log_event
from observability.metrics import timed
from playback.scheduler import PlaybackScheduler
from protocol.live_messages import (
    AudioPayload,
    MalformedMessage,
    ServerMessage,
    build_setup_message,
    decode_server_message,
    encode_realtime_audio,
    encode_tool_responses,
)
from session.connection_status import SessionState
from session.errors import CaptureError, HandshakeError, SessionStateError
from session.live_session import Session, new_session_id
from spec import (
    CAPTURE_QUEUE_MAX_CHUNKS,
    HANDSHAKE_TIMEOUT_S_DEFAULT,
    LIVE_MODEL_DEFAULT,
    OUTPUT_SAMPLE_RATE_HZ,
    PCM_MIME_PREFIX,
    SYSTEM_DIRECTIVE_DEFAULT,
)
from tool_calls.declarations import FUNCTION_DECLARATIONS, ToolCallResponse
from tool_calls.dispatcher import ToolDispatcher
from transcript.accumulator import Channel
from transport.base import DuplexChannel, TransportError


CaptureFactory = Callable[[], CaptureSource]
SinkFactory = Callable[[], OutputSink]
ChannelFactory = Callable[[str, str], DuplexChannel]  # (credential, session_id)


def _payload_rate_hz(payload: AudioPayload) -> int:
    """Sample rate from a mime tag like 'audio/pcm;rate=24000'."""
    mime = payload.mime_type.replace(" ", "")
    if PCM_MIME_PREFIX in mime:
        try:
            rate = int(mime.split(PCM_MIME_PREFIX, 1)[1].split(";", 1)[0])
        except ValueError:
            rate = 0
        # Zero or negative rates fall back like an unparseable tag
        if rate > 0:
            return rate
    return OUTPUT_SAMPLE_RATE_HZ


class SessionProtocol:
    """
    One protocol instance per process; at most one live session at a time.

    All methods run on the event loop thread.
    """

    def __init__(
        self,
        *,
        hud: HudStore,
        capture_factory: CaptureFactory,
        sink_factory: SinkFactory,
        channel_factory: ChannelFactory,
        model: str = LIVE_MODEL_DEFAULT,
        system_directive: str = SYSTEM_DIRECTIVE_DEFAULT,
        enable_google_search: bool = False,
        handshake_timeout_s: float = HANDSHAKE_TIMEOUT_S_DEFAULT,
        framer: PcmFramer | None = None,
    ) -> None:
        self._hud = hud
        self._capture_factory = capture_factory
        self._sink_factory = sink_factory
        self._channel_factory = channel_factory

        self._model = model
        self._system_directive = system_directive
        self._enable_google_search = enable_google_search
        self._handshake_timeout_s = handshake_timeout_s
        self._framer = framer or PcmFramer()

        self._state = SessionState.DISCONNECTED
        self._session: Session | None = None
        self._last_error: str | None = None

        self._capture_queue: asyncio.Queue[AudioChunk] | None = None
        self._capture_drops = 0
        self._pump_task: asyncio.Task[None] | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._response_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def last_error(self) -> str | None:
        """Why the most recent session ended abnormally (None if clean)."""
        return self._last_error

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, credential: str) -> Session:
        """
        Open capture, output and the remote session.

        Raises:
            SessionStateError if a session is already connecting or open.
            CaptureError if local audio cannot be acquired.
            HandshakeError if the peer cannot be reached or never
            acknowledges setup.
        """
        if self._state is not SessionState.DISCONNECTED:
            raise SessionStateError(f"connect requires DISCONNECTED, state is {self._state.value}")

        session = Session(session_id=new_session_id(), credential=credential)
        self._session = session
        self._state = SessionState.CONNECTING
        self._last_error = None

        log_event({"event_type": "session_connecting", **session.log_context()})

        try:
            with timed("session_connect_latency", session_id=session.session_id):
                await self._open_session(session)
        except (CaptureError, HandshakeError) as exc:
            self._last_error = f"{type(exc).__name__}: {exc}"
            session.error = self._last_error
            log_event({
                "event_type": "session_connect_failed",
                **session.log_context(),
                "error": self._last_error,
            })
            await self._teardown(session, reason="connect_failed")
            raise
        except BaseException:
            # Cancellation or an unexpected fault: never leave CONNECTING behind
            await self._teardown(session, reason="connect_aborted")
            raise

        if self._session is not session:
            # close() won the race while the handshake was in flight
            raise HandshakeError("session closed during connect")

        session.state = SessionState.OPEN
        self._state = SessionState.OPEN
        self._hud.apply(
            ConnectionChanged(
                event_type=HudEventType.CONNECTION_CHANGED,
                is_connected=True,
                is_listening=True,
            )
        )

        self._pump_task = asyncio.create_task(self._pump_loop(session))
        self._recv_task = asyncio.create_task(self._receive_loop(session))

        log_event({"event_type": "session_open", **session.log_context()})
        return session

    async def close(self, reason: str = "local_close") -> None:
        """
        End the current session, if any.

        Safe from any state and idempotent. Capture stops before anything
        else so no further frames are sent; live playback is flushed
        rather than drained.
        """
        session = self._session
        if session is None:
            self._state = SessionState.DISCONNECTED
            return
        await self._teardown(session, reason=reason)

    # ------------------------------------------------------------------
    # Connect helpers
    # ------------------------------------------------------------------

    async def _open_session(self, session: Session) -> None:
        # Local audio first: a missing microphone never reaches the peer
        self._capture_queue = asyncio.Queue(maxsize=CAPTURE_QUEUE_MAX_CHUNKS)
        self._capture_drops = 0
        session.capture = self._capture_factory()
        await session.capture.start(self._on_capture_chunk)

        session.sink = self._sink_factory()
        try:
            await session.sink.open()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise CaptureError(f"audio output unavailable: {type(exc).__name__}: {exc}") from exc

        session.scheduler = PlaybackScheduler(sink=session.sink, session_id=session.session_id)
        session.dispatcher = ToolDispatcher(hud=self._hud, session_id=session.session_id)

        channel = self._channel_factory(session.credential, session.session_id)
        session.channel = channel

        setup = build_setup_message(
            model=self._model,
            system_directive=self._system_directive,
            function_declarations=FUNCTION_DECLARATIONS,
            enable_google_search=self._enable_google_search,
        )

        try:
            await channel.open()
            await channel.send(setup)
            await asyncio.wait_for(
                self._await_setup_complete(session, channel),
                timeout=self._handshake_timeout_s,
            )
        except TransportError as exc:
            raise HandshakeError(str(exc)) from exc
        except asyncio.TimeoutError as exc:
            raise HandshakeError(
                f"no setupComplete within {self._handshake_timeout_s}s"
            ) from exc

    async def _await_setup_complete(self, session: Session, channel: DuplexChannel) -> None:
        async for raw in channel.receive():
            try:
                msg = decode_server_message(raw)
            except MalformedMessage as exc:
                log_event({
                    "event_type": "handshake_message_malformed",
                    **session.log_context(),
                    "error": str(exc),
                })
                continue
            if msg.setup_complete:
                return
            log_event({
                "event_type": "handshake_message_ignored",
                **session.log_context(),
            })
        raise HandshakeError("peer closed during handshake")

    # ------------------------------------------------------------------
    # Outbound audio
    # ------------------------------------------------------------------

    def _on_capture_chunk(self, chunk: AudioChunk) -> None:
        queue = self._capture_queue
        if queue is None or self._state is not SessionState.OPEN:
            return

        if queue.full():
            # Sender is behind; keep the newest audio
            queue.get_nowait()
            self._capture_drops += 1
            if self._capture_drops == 1 or self._capture_drops % 50 == 0:
                log_event({
                    "event_type": "capture_chunk_dropped",
                    "session_id": self._session.session_id if self._session else None,
                    "dropped_total": self._capture_drops,
                })
        queue.put_nowait(chunk)

    async def _pump_loop(self, session: Session) -> None:
        queue = self._capture_queue
        channel = session.channel
        if queue is None or channel is None:
            return

        try:
            while True:
                chunk = await queue.get()
                blob = self._framer.frame(chunk.samples)
                await channel.send(encode_realtime_audio(blob))
                session.frames_sent += 1
        except TransportError as exc:
            await self._on_transport_error(session, exc)

    # ------------------------------------------------------------------
    # Inbound dispatch
    # ------------------------------------------------------------------

    async def _receive_loop(self, session: Session) -> None:
        channel = session.channel
        if channel is None:
            return

        try:
            async for raw in channel.receive():
                self._on_frame(session, raw)
        except TransportError as exc:
            await self._on_transport_error(session, exc)
            return

        if self._session is session:
            await self.close(reason="peer_closed")

    def _on_frame(self, session: Session, raw: str | bytes) -> None:
        try:
            msg = decode_server_message(raw)
        except MalformedMessage as exc:
            log_event({
                "event_type": "inbound_message_malformed",
                **session.log_context(),
                "error": str(exc),
            })
            return

        session.inbound_seq += 1
        if msg.section_errors:
            log_event({
                "event_type": "inbound_section_malformed",
                **session.log_context(),
                "errors": list(msg.section_errors),
            })
        self.handle_message(session, msg)

    def handle_message(self, session: Session, msg: ServerMessage) -> None:
        """
        Route one decoded message. Check order matters: a single message
        may carry transcripts, a turn boundary, audio and tool calls.

        A failure while applying content is logged and does not stop the
        tool calls in the same message from being answered.
        """
        try:
            self._apply_content(session, msg)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._log_dispatch_error(session, exc)

        if msg.tool_calls and session.dispatcher is not None:
            for request in msg.tool_calls:
                try:
                    response = session.dispatcher.handle(request)
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    self._log_dispatch_error(session, exc)
                    continue
                self._spawn_tool_response(session, response)

        if msg.go_away_time_left is not None:
            log_event({
                "event_type": "peer_go_away",
                **session.log_context(),
                "time_left": msg.go_away_time_left,
            })

    def _apply_content(self, session: Session, msg: ServerMessage) -> None:
        acc = session.accumulator

        if msg.input_transcript:
            acc.append_delta(Channel.LOCAL, msg.input_transcript)

        if msg.output_transcript:
            acc.append_delta(Channel.REMOTE, msg.output_transcript)

        if msg.turn_complete:
            commit = acc.commit_turn()
            if commit.local_text is not None:
                self._hud.append_chat(Sender.LOCAL, commit.local_text)
            if commit.remote_text is not None:
                self._hud.append_chat(Sender.REMOTE, commit.remote_text)

        scheduler = session.scheduler
        if msg.interrupted and scheduler is not None:
            scheduler.flush()

        if msg.audio_payloads and scheduler is not None:
            for payload in msg.audio_payloads:
                scheduler.schedule(self._decode_audio(payload))

    @staticmethod
    def _log_dispatch_error(session: Session, exc: Exception) -> None:
        log_event({
            "event_type": "inbound_dispatch_error",
            **session.log_context(),
            "exception": type(exc).__name__,
            "message": str(exc),
        })

    @staticmethod
    def _decode_audio(payload: AudioPayload) -> np.ndarray:
        samples = pcm16le_to_float32(payload.data)
        rate = _payload_rate_hz(payload)
        if rate != OUTPUT_SAMPLE_RATE_HZ:
            samples = resample(samples, rate, OUTPUT_SAMPLE_RATE_HZ)
        return samples

    # ------------------------------------------------------------------
    # Tool responses
    # ------------------------------------------------------------------

    def _spawn_tool_response(self, session: Session, response: ToolCallResponse) -> None:
        task = asyncio.create_task(self._send_tool_response(session, response))
        self._response_tasks.add(task)
        task.add_done_callback(self._response_tasks.discard)

    async def _send_tool_response(self, session: Session, response: ToolCallResponse) -> None:
        channel = session.channel
        if channel is None:
            return
        try:
            await channel.send(encode_tool_responses([response]))
        except TransportError as exc:
            log_event({
                "event_type": "tool_response_send_failed",
                **session.log_context(),
                "tool_call_id": response.id,
                "tool": response.name,
                "error": str(exc),
            })
            await self._on_transport_error(session, exc)

    # ------------------------------------------------------------------
    # Failure / teardown
    # ------------------------------------------------------------------

    async def _on_transport_error(self, session: Session, exc: Exception) -> None:
        if self._session is not session or session.state is SessionState.DISCONNECTED:
            return

        self._last_error = f"{type(exc).__name__}: {exc}"
        session.error = self._last_error
        log_event({
            "event_type": "session_transport_error",
            **session.log_context(),
            "error": self._last_error,
        })
        await self._teardown(session, reason="transport_error")

    async def _teardown(self, session: Session, *, reason: str) -> None:
        if session.state is SessionState.DISCONNECTED:
            return
        session.state = SessionState.DISCONNECTED
        if self._session is session:
            self._session = None

        try:
            await self._release(session)
        finally:
            self._state = SessionState.DISCONNECTED
            self._hud.apply(
                ConnectionChanged(
                    event_type=HudEventType.CONNECTION_CHANGED,
                    is_connected=False,
                    is_listening=False,
                )
            )

            log_event({
                "event_type": "session_closed",
                **session.log_context(),
                "reason": reason,
                "error": session.error,
                "frames_sent": session.frames_sent,
                "capture_drops": self._capture_drops,
            })

    async def _release(self, session: Session) -> None:
        """
        Release session resources in order. A step that raises is logged
        and the remaining steps still run.
        """
        def attempt(step: str, release: Callable[[], Any]) -> None:
            try:
                release()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._log_release_error(session, step, exc)

        # 1. No further frames
        if session.capture is not None:
            attempt("capture_stop", session.capture.stop)
        self._capture_queue = None

        # 2. Stop background work (never the task running this teardown)
        current = asyncio.current_task()
        pending: list[asyncio.Task[Any]] = []
        for task in (self._pump_task, self._recv_task, *self._response_tasks):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            pending.append(task)
        self._pump_task = None
        self._recv_task = None

        # 3. Stale audio never plays after close
        if session.scheduler is not None:
            attempt("playback_flush", session.scheduler.flush)
        attempt("transcript_reset", session.accumulator.reset)
        if session.dispatcher is not None:
            attempt("tool_cancel", session.dispatcher.cancel_pending)

        if session.sink is not None:
            attempt("sink_close", session.sink.close)
        if session.channel is not None:
            try:
                await session.channel.close()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._log_release_error(session, "channel_close", exc)

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    @staticmethod
    def _log_release_error(session: Session, step: str, exc: Exception) -> None:
        log_event({
            "event_type": "session_release_error",
            **session.log_context(),
            "step": step,
            "exception": type(exc).__name__,
            "message": str(exc),
        })
