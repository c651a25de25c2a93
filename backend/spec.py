"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Capture audio (microphone → peer): PCM16 mono @ 16kHz
# =============================================================================

CAPTURE_SAMPLE_RATE_HZ: Final[int] = 16_000
CAPTURE_CHANNELS: Final[int] = 1
CAPTURE_BLOCK_SAMPLES: Final[int] = 4096

PCM_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
PCM16_MAX: Final[int] = 32_767
PCM16_MIN: Final[int] = -32_768
PCM16_SCALE: Final[float] = 32_768.0

PCM_ENCODING: Final[str] = "pcm_s16le"
PCM_MIME_PREFIX: Final[str] = "audio/pcm;rate="

# Bounded so a stalled sender cannot grow memory without limit (~25s)
CAPTURE_QUEUE_MAX_CHUNKS: Final[int] = 100

# =============================================================================
# Output audio (peer → speaker): PCM16 mono @ 24kHz
# =============================================================================

OUTPUT_SAMPLE_RATE_HZ: Final[int] = 24_000
OUTPUT_CHANNELS: Final[int] = 1
OUTPUT_BLOCK_SAMPLES: Final[int] = 480  # 20ms

# Level meter projection (cosmetic)
LEVEL_METER_INTERVAL_S: Final[float] = 0.05
LEVEL_METER_FULL_SCALE_RMS: Final[float] = 0.5

# =============================================================================
# Remote endpoint  [Gemini Live BidiGenerateContent]
# =============================================================================

LIVE_WS_URL_DEFAULT: Final[str] = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
LIVE_MODEL_DEFAULT: Final[str] = "models/gemini-2.5-flash-native-audio-preview-12-2025"
LIVE_RESPONSE_MODALITY: Final[str] = "AUDIO"
LIVE_MAX_MESSAGE_BYTES: Final[int] = 2**24

HANDSHAKE_TIMEOUT_S_DEFAULT: Final[float] = 10.0

SYSTEM_DIRECTIVE_DEFAULT: Final[str] = (
    "You are J.A.R.V.I.S. Control this interface. Be concise."
)

# =============================================================================
# Tool surface
# =============================================================================

TOOL_SET_SYSTEM_THEME: Final[str] = "setSystemTheme"
TOOL_RUN_SYSTEM_DIAGNOSTICS: Final[str] = "runSystemDiagnostics"
TOOL_LOCK_SYSTEM: Final[str] = "lockSystem"
TOOL_UNLOCK_SYSTEM: Final[str] = "unlockSystem"

TOOL_RESULT_SUCCESS: Final[str] = "success"
TOOL_RESULT_FAILED: Final[str] = "failed"

THEME_COLORS: Final[Tuple[str, ...]] = ("cyan", "amber", "red", "green")
THEME_COLOR_DEFAULT: Final[str] = "cyan"

DIAGNOSTIC_MODES: Final[Tuple[str, ...]] = ("full", "quick")
DIAGNOSTIC_MODE_DEFAULT: Final[str] = "quick"
DIAGNOSTIC_DURATION_S: Final[dict[str, float]] = {
    "quick": 2.0,
    "full": 6.0,
}

# Answered tool-call ids remembered for duplicate replay
TOOL_CALL_ID_MEMORY: Final[int] = 256

# =============================================================================
# Chat transcript
# =============================================================================

CHAT_MESSAGE_ID_CHARS: Final[int] = 7
