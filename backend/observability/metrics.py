"""
Metrics and timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit metrics as JSONL events via observability.logger
- Never aggregate: one metric = one log event

Durations use monotonic time; event timestamps (ts_ms) use wall-clock time.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from observability.logger import log_event


@dataclass
class TimerResult:
    """
    Filled in when a `timed()` block exits.

    ok is False when the block raised.
    """
    name: str
    duration_ms: int | None = None
    ok: bool = True
    details: dict[str, Any] = field(default_factory=dict)


def emit_metric(
    name: str,
    value: float,
    *,
    unit: str,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a single metric event."""
    log_event({
        "event_type": "METRIC",
        "metric": name,
        "value": value,
        "unit": unit,
        "session_id": session_id,
        "details": details or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[TimerResult]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once, on exit
    - Exceptions inside the block are NOT suppressed

    Usage:
        with timed("handshake_latency", session_id=sid) as t:
            await channel.open()
        t.duration_ms
    """
    result = TimerResult(name=name, details=dict(details or {}))
    start_ns = time.monotonic_ns()
    try:
        yield result
    except BaseException:
        result.ok = False
        raise
    finally:
        result.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        emit_metric(
            name,
            result.duration_ms,
            unit="ms",
            session_id=session_id,
            details={**result.details, "ok": result.ok},
        )
