"""
Local sound-card devices backed by sounddevice (PortAudio).

MicrophoneCapture:
- float32 InputStream at the device rate
- blocks copied off the driver thread and resampled to the wire rate
  on the event loop

SpeakerSink:
- float32 OutputStream at the output rate
- callback mixes scheduled segments by absolute frame position
- the clock is "frames rendered so far / rate", so it only advances
  while the device is consuming audio
- completion notifications and level readings are handed to the loop

Driver callbacks never touch session state directly.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np
import sounddevice as sd

from audio.base import CaptureSource, ChunkCallback, OutputSink, SegmentDoneCallback
from audio.frames import AudioChunk, PlaybackSegment
from audio.pcm import resample
from observability.logger import log_event
from session.errors import CaptureError
from spec import (
    CAPTURE_BLOCK_SAMPLES,
    CAPTURE_CHANNELS,
    CAPTURE_SAMPLE_RATE_HZ,
    LEVEL_METER_FULL_SCALE_RMS,
    LEVEL_METER_INTERVAL_S,
    OUTPUT_BLOCK_SAMPLES,
    OUTPUT_CHANNELS,
    OUTPUT_SAMPLE_RATE_HZ,
)


LevelCallback = Callable[[float], None]


# ---------------------------------------------------------------------
# Microphone
# ---------------------------------------------------------------------

class MicrophoneCapture(CaptureSource):
    """Default (or selected) input device as a push source."""

    def __init__(
        self,
        *,
        device: int | None = None,
        device_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ,
        block_samples: int = CAPTURE_BLOCK_SAMPLES,
    ) -> None:
        if device_rate_hz <= 0:
            raise ValueError("device_rate_hz must be > 0")
        self._device = device
        self._device_rate_hz = device_rate_hz
        # Keep block duration constant regardless of device rate
        self._blocksize = max(1, block_samples * device_rate_hz // CAPTURE_SAMPLE_RATE_HZ)

        self._stream: Any = None  # sd.InputStream
        self._on_chunk: ChunkCallback | None = None
        self._active = False
        self._overflows = 0

    async def start(self, on_chunk: ChunkCallback) -> None:
        if self._stream is not None:
            return

        loop = asyncio.get_running_loop()
        self._on_chunk = on_chunk
        self._active = True

        def _callback(indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
            if status and status.input_overflow:
                self._overflows += 1
            if not self._active:
                return
            # Copy: PortAudio reuses indata after the callback returns
            block = np.array(indata[:, 0], dtype=np.float32)
            loop.call_soon_threadsafe(self._deliver, block)

        try:
            self._stream = await asyncio.to_thread(self._open_stream, _callback)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._active = False
            self._on_chunk = None
            raise CaptureError(f"microphone unavailable: {type(exc).__name__}: {exc}") from exc

        log_event({
            "event_type": "capture_started",
            "device": self._device,
            "device_rate_hz": self._device_rate_hz,
            "blocksize": self._blocksize,
        })

    def stop(self) -> None:
        self._active = False
        self._on_chunk = None

        stream = self._stream
        self._stream = None
        if stream is None:
            return

        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as exc:
            log_event({
                "event_type": "capture_stop_error",
                "error": str(exc),
            })

        log_event({
            "event_type": "capture_stopped",
            "input_overflows": self._overflows,
        })

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _open_stream(self, callback: Callable[..., None]) -> Any:
        stream = sd.InputStream(
            samplerate=self._device_rate_hz,
            channels=CAPTURE_CHANNELS,
            dtype="float32",
            blocksize=self._blocksize,
            device=self._device,
            callback=callback,
        )
        stream.start()
        return stream

    def _deliver(self, block: np.ndarray) -> None:
        on_chunk = self._on_chunk
        if not self._active or on_chunk is None:
            return

        samples = resample(block, self._device_rate_hz, CAPTURE_SAMPLE_RATE_HZ)
        on_chunk(AudioChunk(samples=samples, captured_at=time.monotonic()))


# ---------------------------------------------------------------------
# Speaker
# ---------------------------------------------------------------------

@dataclass
class _Scheduled:
    segment: PlaybackSegment
    start_frame: int
    on_done: SegmentDoneCallback

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.segment.samples)


class SpeakerSink(OutputSink):
    """Default (or selected) output device as a scheduled push sink."""

    def __init__(
        self,
        *,
        device: int | None = None,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
        block_samples: int = OUTPUT_BLOCK_SAMPLES,
        on_level: LevelCallback | None = None,
    ) -> None:
        self._device = device
        self._rate = sample_rate_hz
        self._blocksize = block_samples
        self._on_level = on_level

        self._stream: Any = None  # sd.OutputStream
        self._loop: asyncio.AbstractEventLoop | None = None

        # Shared with the driver thread
        self._lock = threading.Lock()
        self._frames_rendered = 0
        self._scheduled: dict[int, _Scheduled] = {}

        self._last_level_at = 0.0

    # ------------------------------------------------------------------
    # OutputClock
    # ------------------------------------------------------------------

    def now(self) -> float:
        with self._lock:
            return self._frames_rendered / self._rate

    # ------------------------------------------------------------------
    # OutputSink
    # ------------------------------------------------------------------

    async def open(self) -> None:
        if self._stream is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._stream = await asyncio.to_thread(self._open_stream)
        log_event({
            "event_type": "output_opened",
            "device": self._device,
            "sample_rate_hz": self._rate,
        })

    def play(self, segment: PlaybackSegment, on_done: SegmentDoneCallback) -> None:
        item = _Scheduled(
            segment=segment,
            start_frame=int(round(segment.start_at * self._rate)),
            on_done=on_done,
        )
        with self._lock:
            self._scheduled[segment.segment_id] = item

    def stop(self, segment: PlaybackSegment) -> None:
        with self._lock:
            self._scheduled.pop(segment.segment_id, None)

    def close(self) -> None:
        with self._lock:
            self._scheduled.clear()

        stream = self._stream
        self._stream = None

        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except sd.PortAudioError as exc:
                log_event({
                    "event_type": "output_close_error",
                    "error": str(exc),
                })

        if self._on_level is not None:
            self._on_level(0.0)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _open_stream(self) -> Any:
        stream = sd.OutputStream(
            samplerate=self._rate,
            channels=OUTPUT_CHANNELS,
            dtype="float32",
            blocksize=self._blocksize,
            device=self._device,
            callback=self._render,
        )
        stream.start()
        return stream

    def _render(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        mix = np.zeros(frames, dtype=np.float32)
        finished: list[_Scheduled] = []

        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames

            for key, item in list(self._scheduled.items()):
                if item.start_frame >= block_end:
                    continue
                lo = max(item.start_frame, block_start)
                hi = min(item.end_frame, block_end)
                if hi > lo:
                    src = item.segment.samples
                    mix[lo - block_start:hi - block_start] += src[
                        lo - item.start_frame:hi - item.start_frame
                    ]
                if item.end_frame <= block_end:
                    del self._scheduled[key]
                    finished.append(item)

            self._frames_rendered = block_end

        np.clip(mix, -1.0, 1.0, out=mix)
        outdata[:, 0] = mix

        loop = self._loop
        if loop is None:
            return

        for item in finished:
            loop.call_soon_threadsafe(item.on_done, item.segment)

        if self._on_level is not None:
            now = time.monotonic()
            if now - self._last_level_at >= LEVEL_METER_INTERVAL_S:
                self._last_level_at = now
                rms = float(np.sqrt(np.mean(np.square(mix)))) if frames else 0.0
                loop.call_soon_threadsafe(self._on_level, rms / LEVEL_METER_FULL_SCALE_RMS)
