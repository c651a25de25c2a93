# pylint: disable=missing-module-docstring,missing-function-docstring

import struct

import numpy as np

from audio.framer import PcmFramer
from audio.pcm import float32_to_pcm16le, pcm16le_to_float32, resample
from spec import PCM16_MAX, PCM16_MIN


def _as_int16(data: bytes) -> list[int]:
    return list(struct.unpack(f"<{len(data) // 2}h", data))


# ---------------------------------------------------------------------
# Quantization
# ---------------------------------------------------------------------

def test_out_of_range_samples_clamp():
    blob = PcmFramer().frame([1.5, -1.5, 1.0, -1.0])

    assert _as_int16(blob.data) == [PCM16_MAX, PCM16_MIN, PCM16_MAX, PCM16_MIN]


def test_nan_becomes_silence():
    blob = PcmFramer().frame(np.array([np.nan, 0.5], dtype=np.float32))

    assert _as_int16(blob.data) == [0, 16384]


def test_two_bytes_per_sample_little_endian():
    blob = PcmFramer().frame(np.zeros(4096, dtype=np.float32))

    assert len(blob.data) == 8192
    assert blob.sample_count == 4096
    # 0.25 * 32768 = 8192 = 0x2000 -> LE bytes 00 20
    assert float32_to_pcm16le(np.array([0.25])) == b"\x00\x20"


def test_empty_block_frames_to_empty_payload():
    blob = PcmFramer().frame([])

    assert blob.data == b""
    assert blob.sample_count == 0


# ---------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------

def test_mime_type_carries_rate():
    assert PcmFramer().frame([0.0]).mime_type == "audio/pcm;rate=16000"
    assert PcmFramer(sample_rate_hz=24000).mime_type == "audio/pcm;rate=24000"
    assert PcmFramer().frame([0.0]).encoding == "pcm_s16le"


# ---------------------------------------------------------------------
# Decode helpers
# ---------------------------------------------------------------------

def test_decode_drops_dangling_byte():
    audio = pcm16le_to_float32(b"\x00\x40\x00\xc0\x7f")

    assert audio.dtype == np.float32
    assert audio.tolist() == [0.5, -0.5]


def test_resample_identity_and_ratio():
    block = np.zeros(1600, dtype=np.float32)

    assert resample(block, 16000, 16000).size == 1600
    assert resample(np.zeros(4800, dtype=np.float32), 48000, 16000).size == 1600
