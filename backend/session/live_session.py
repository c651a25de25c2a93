"""
Live session container.

- Owns everything that lives exactly as long as one connection:
  capture source, output sink, channel, scheduler, accumulator, dispatcher
- Owned and mutated by SessionProtocol only
- NOT a state machine
- Contains no protocol logic
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from uuid import uuid4

from audio.base import CaptureSource, OutputSink
from playback.scheduler import PlaybackScheduler
from session.connection_status import SessionState
from tool_calls.dispatcher import ToolDispatcher
from transcript.accumulator import TranscriptAccumulator
from transport.base import DuplexChannel


def new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


@dataclass
class Session:
    """Mutable runtime container for the single live session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    credential: str = field(repr=False)
    created_at: float = field(default_factory=time.time)
    state: SessionState = SessionState.CONNECTING

    # Terminal error (None after a clean close)
    error: str | None = None

    # Inbound message counter, ordering diagnostics only
    inbound_seq: int = 0
    frames_sent: int = 0

    # ------------------------------------------------------------------
    # Collaborators (attached during connect)
    # ------------------------------------------------------------------

    capture: CaptureSource | None = None
    sink: OutputSink | None = None
    channel: DuplexChannel | None = None

    # ------------------------------------------------------------------
    # Core components
    # ------------------------------------------------------------------

    accumulator: TranscriptAccumulator = field(default_factory=TranscriptAccumulator)
    scheduler: PlaybackScheduler | None = None
    dispatcher: ToolDispatcher | None = None

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this session."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "inbound_seq": self.inbound_seq,
        }
