"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from spec import (
    CAPTURE_SAMPLE_RATE_HZ,
    HANDSHAKE_TIMEOUT_S_DEFAULT,
    LIVE_MODEL_DEFAULT,
    LIVE_WS_URL_DEFAULT,
    SYSTEM_DIRECTIVE_DEFAULT,
)


def _optional_int(value: str | None) -> int | None:
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the server factory and the session protocol.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Remote endpoint
    # ------------------------------------------------------------------

    # Opaque; never logged
    api_key: str | None = field(default=None, repr=False)
    live_model: str = LIVE_MODEL_DEFAULT
    live_ws_url: str = LIVE_WS_URL_DEFAULT
    system_directive: str = SYSTEM_DIRECTIVE_DEFAULT
    enable_google_search: bool = True
    handshake_timeout_s: float = HANDSHAKE_TIMEOUT_S_DEFAULT

    # ------------------------------------------------------------------
    # Audio devices
    # ------------------------------------------------------------------

    input_device: int | None = None
    output_device: int | None = None
    capture_device_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            api_key=os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY"),
            live_model=os.environ.get("LIVE_MODEL", LIVE_MODEL_DEFAULT),
            live_ws_url=os.environ.get("LIVE_WS_URL", LIVE_WS_URL_DEFAULT),
            system_directive=os.environ.get("SYSTEM_DIRECTIVE", SYSTEM_DIRECTIVE_DEFAULT),
            enable_google_search=os.environ.get("ENABLE_GOOGLE_SEARCH", "1") == "1",
            handshake_timeout_s=float(
                os.environ.get("HANDSHAKE_TIMEOUT_S", HANDSHAKE_TIMEOUT_S_DEFAULT)
            ),

            input_device=_optional_int(os.environ.get("INPUT_DEVICE")),
            output_device=_optional_int(os.environ.get("OUTPUT_DEVICE")),
            capture_device_rate_hz=int(
                os.environ.get("CAPTURE_DEVICE_RATE_HZ", CAPTURE_SAMPLE_RATE_HZ)
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
