"""
Gapless playback scheduling for peer audio.

Model:
- One cursor (next_start_time) on the output clock, initialized to the
  clock's current instant when the session opens.
- Each decoded segment starts at max(cursor, clock.now()) and advances the
  cursor by its duration.

Guarantees:
- Segments play in schedule() call order
- No two scheduled segments overlap
- A segment starts exactly where the previous one ends unless the previous
  one had already finished, in which case it starts at clock.now()

The live set exists only so flush() can silence everything at once;
it confers no ordering.
"""

from __future__ import annotations

import numpy as np

from audio.base import OutputSink
from audio.frames import PlaybackSegment
from observability.logger import log_event
from spec import OUTPUT_SAMPLE_RATE_HZ


class PlaybackScheduler:
    """
    Owns the playback cursor for a single session.

    All methods are called on the event loop thread.
    """

    def __init__(
        self,
        *,
        sink: OutputSink,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
        session_id: str | None = None,
    ) -> None:
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")

        self._sink = sink
        self._rate = sample_rate_hz
        self._session_id = session_id

        self._next_start_time: float = sink.now()
        self._live: dict[int, PlaybackSegment] = {}
        self._next_segment_id = 1

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def next_start_time(self) -> float:
        return self._next_start_time

    @property
    def live_count(self) -> int:
        return len(self._live)

    def live_segments(self) -> tuple[PlaybackSegment, ...]:
        """Segments scheduled but not yet finished, in schedule order."""
        return tuple(self._live.values())

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, samples: np.ndarray) -> PlaybackSegment:
        """
        Place a decoded buffer on the output timeline after everything
        already scheduled.
        """
        audio = np.asarray(samples, dtype=np.float32).reshape(-1)
        duration_s = audio.size / self._rate

        now = self._sink.now()
        start_at = max(self._next_start_time, now)

        segment = PlaybackSegment(
            segment_id=self._next_segment_id,
            samples=audio,
            duration_s=duration_s,
            start_at=start_at,
        )
        self._next_segment_id += 1

        self._live[segment.segment_id] = segment
        self._sink.play(segment, self._on_segment_done)
        self._next_start_time = start_at + duration_s

        return segment

    def flush(self) -> int:
        """
        Stop and discard every live segment; reset the cursor to now.

        Returns:
            Number of segments discarded.
        """
        flushed = list(self._live.values())
        self._live.clear()

        for segment in flushed:
            self._sink.stop(segment)

        self._next_start_time = self._sink.now()

        if flushed:
            log_event({
                "event_type": "playback_flushed",
                "session_id": self._session_id,
                "segments": len(flushed),
                "discarded_s": round(sum(s.duration_s for s in flushed), 3),
            })

        return len(flushed)

    # ------------------------------------------------------------------
    # Completion listener
    # ------------------------------------------------------------------

    def _on_segment_done(self, segment: PlaybackSegment) -> None:
        # Completions for flushed segments are stale; ignore them
        self._live.pop(segment.segment_id, None)
