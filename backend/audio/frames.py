"""
Audio data primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class AudioChunk:
    """
    One block of captured microphone audio.

    samples:
        Mono float32 samples, nominally in [-1.0, 1.0], already at
        spec.CAPTURE_SAMPLE_RATE_HZ.

    captured_at:
        Monotonic seconds when the block was handed over by the device.
        Observability only.

    Consumed once by PcmFramer, then discarded.
    """
    samples: np.ndarray
    captured_at: float


@dataclass(frozen=True, eq=False)
class PlaybackSegment:
    """
    Decoded peer audio placed on the output timeline.

    segment_id:
        Monotonic per scheduler; used for logging and sink bookkeeping.

    samples:
        Mono float32 samples at spec.OUTPUT_SAMPLE_RATE_HZ.

    duration_s:
        len(samples) / output rate.

    start_at:
        Absolute output-clock time (seconds) the segment begins playing.

    Identity equality: two segments with equal audio are still distinct.
    """
    segment_id: int
    samples: np.ndarray
    duration_s: float
    start_at: float

    @property
    def end_at(self) -> float:
        return self.start_at + self.duration_s
