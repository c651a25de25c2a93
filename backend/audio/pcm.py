"""PCM conversion utilities."""
from math import gcd

import numpy as np
from scipy import signal

from spec import PCM16_MAX, PCM16_MIN, PCM16_SCALE


def float32_to_pcm16le(samples: np.ndarray) -> bytes:
    """
    Quantize float samples to PCM16 little-endian mono bytes.

    - Scales by 32768 and clamps to [-32768, 32767] (no wraparound)
    - NaN becomes 0; +/-inf clamp like any out-of-range value
    """
    audio = np.asarray(samples, dtype=np.float64).reshape(-1)
    if audio.size == 0:
        return b""

    audio = np.nan_to_num(audio, nan=0.0, posinf=PCM16_MAX, neginf=PCM16_MIN)
    scaled = np.clip(audio * PCM16_SCALE, PCM16_MIN, PCM16_MAX)
    return scaled.astype("<i2").tobytes()


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; drop the dangling byte
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / PCM16_SCALE
    return audio_f32


def resample(samples: np.ndarray, src_rate_hz: int, dst_rate_hz: int) -> np.ndarray:
    """
    Resample mono float audio between device and wire rates.

    Stateless polyphase resampling; identity when rates match.
    """
    if src_rate_hz <= 0 or dst_rate_hz <= 0:
        raise ValueError("sample rates must be > 0")

    audio = np.asarray(samples, dtype=np.float32).reshape(-1)
    if src_rate_hz == dst_rate_hz or audio.size == 0:
        return audio

    g = gcd(src_rate_hz, dst_rate_hz)
    out = signal.resample_poly(audio, dst_rate_hz // g, src_rate_hz // g)
    return out.astype(np.float32)
