"""
PCM framing for the outbound audio channel (pure).

Purpose:
- Turn one captured block of float samples into a transport-ready frame:
  PCM16 little-endian bytes plus a content descriptor the peer understands.

Invariants:
- PCM16 signed, little-endian, mono
- Out-of-range samples clamp; NaN becomes silence
- Never raises on sample content (a live stream must not be interrupted)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from audio.pcm import float32_to_pcm16le
from spec import CAPTURE_SAMPLE_RATE_HZ, PCM_ENCODING, PCM_MIME_PREFIX


Samples = Union[np.ndarray, Sequence[float]]


@dataclass(frozen=True)
class MediaBlob:
    """
    One framed block of outbound audio.

    data:
        Raw PCM16LE bytes (2 bytes per sample).
    mime_type:
        Transport content tag, e.g. "audio/pcm;rate=16000".
    encoding:
        Sample encoding identifier.
    """
    data: bytes
    mime_type: str
    encoding: str = PCM_ENCODING

    @property
    def sample_count(self) -> int:
        return len(self.data) // 2


class PcmFramer:
    """
    Stateless float → PCM16 framer.

    One instance per session is enough; frame() has no side effects.
    """

    def __init__(self, *, sample_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ) -> None:
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        self._sample_rate_hz = sample_rate_hz
        self._mime_type = f"{PCM_MIME_PREFIX}{sample_rate_hz}"

    @property
    def mime_type(self) -> str:
        return self._mime_type

    def frame(self, samples: Samples) -> MediaBlob:
        """Quantize and wrap a block of samples in [-1.0, 1.0]."""
        return MediaBlob(
            data=float32_to_pcm16le(np.asarray(samples, dtype=np.float64)),
            mime_type=self._mime_type,
        )
