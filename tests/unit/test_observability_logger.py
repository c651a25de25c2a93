# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger, metrics


@pytest.fixture(name="captured")
def _captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", lines.append)
    monkeypatch.setattr(logger, "_enabled", True)
    return lines


def test_log_event_emits_valid_jsonl(captured: list[str]) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is preserved, with ts_ms stamped
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    # Exactly one line emitted
    assert len(captured) == 1

    # Must be valid JSON
    decoded = json.loads(captured[0])

    assert isinstance(decoded.pop("ts_ms"), int)
    assert decoded == payload


def test_caller_timestamp_is_kept(captured: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "ts_ms": 42})

    assert json.loads(captured[0])["ts_ms"] == 42


def test_unserializable_values_are_stringified(captured: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "obj": object()})

    decoded = json.loads(captured[0])
    assert decoded["obj"].startswith("<object object")


def test_disabled_logger_is_silent(captured: list[str]) -> None:
    logger.configure(enabled=False)
    try:
        logger.log_event({"event_type": "TEST"})
    finally:
        logger.configure(enabled=True)

    assert captured == []


def test_timed_emits_metric_even_on_failure(captured: list[str]) -> None:
    with pytest.raises(RuntimeError):
        with metrics.timed("handshake", session_id="sess_1"):
            raise RuntimeError("nope")

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "METRIC"
    assert decoded["metric"] == "handshake"
    assert decoded["unit"] == "ms"
    assert decoded["session_id"] == "sess_1"
    assert decoded["details"]["ok"] is False
