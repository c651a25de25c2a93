"""
Audio device contracts.

This module defines the *interface only*. The session engine treats the
microphone as a push source and the speaker as a scheduled push sink.

Key invariants:
- Callbacks handed to a device are always invoked on the event loop
  thread, never on a driver thread.
- A device never decides session lifecycle; it only reports failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from audio.frames import AudioChunk, PlaybackSegment


ChunkCallback = Callable[[AudioChunk], None]
SegmentDoneCallback = Callable[[PlaybackSegment], None]


class CaptureSource(ABC):
    """
    Push source of microphone blocks at spec.CAPTURE_SAMPLE_RATE_HZ, mono.
    """

    @abstractmethod
    async def start(self, on_chunk: ChunkCallback) -> None:
        """
        Acquire the microphone and begin delivering chunks.

        Raises:
            session.errors.CaptureError if the device or permission
            cannot be acquired.
        """
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """
        Stop delivering chunks immediately.

        Idempotent. No chunk may be delivered after this returns.
        """
        raise NotImplementedError


class OutputClock(ABC):
    """Monotonic output timeline in seconds."""

    @abstractmethod
    def now(self) -> float:
        raise NotImplementedError


class OutputSink(OutputClock):
    """
    Scheduled push sink at spec.OUTPUT_SAMPLE_RATE_HZ, mono.

    The sink is also the clock the scheduler places segments against.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open the output device. Idempotent."""
        raise NotImplementedError

    @abstractmethod
    def play(self, segment: PlaybackSegment, on_done: SegmentDoneCallback) -> None:
        """
        Enqueue a segment to start at segment.start_at.

        on_done fires once when the segment has been fully rendered.
        It does not fire for segments removed via stop().
        """
        raise NotImplementedError

    @abstractmethod
    def stop(self, segment: PlaybackSegment) -> None:
        """Discard a segment, audible or not. Unknown segments are ignored."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Stop all output and release the device. Idempotent."""
        raise NotImplementedError
