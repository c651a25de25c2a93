"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Stamps ts_ms when the caller did not
- Never raises
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_enabled: bool = True


def configure(*, enabled: bool) -> None:
    """Enable or silence event output (AppConfig.enable_json_logs)."""
    global _enabled  # pylint: disable=global-statement
    _enabled = enabled


def now_ms() -> int:
    """Wall-clock milliseconds for event timestamps."""
    return time.time_ns() // 1_000_000


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies event_type and any session context
    (session_id, state). ts_ms is added if missing.

    Values that are not JSON-serializable are rendered with str().
    """
    if not _enabled:
        return

    record: dict[str, Any] = dict(event)
    record.setdefault("ts_ms", now_ms())

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the session
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
