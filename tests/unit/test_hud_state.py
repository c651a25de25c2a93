# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import pytest

import hud.state as state_mod
from hud.events import (
    ConnectionChanged,
    HudEvent,
    HudEventType,
    LevelChanged,
    Sender,
    ThemeChanged,
)
from hud.state import HudStore


def test_initial_snapshot():
    snap = HudStore().snapshot()

    assert snap["isConnected"] is False
    assert snap["isListening"] is False
    assert snap["themeColor"] == "cyan"
    assert snap["isSystemLocked"] is False
    assert snap["isDiagnosticRunning"] is False
    assert snap["chat"] == []


def test_unknown_theme_is_rejected():
    hud = HudStore()

    with pytest.raises(ValueError):
        hud.apply(ThemeChanged(event_type=HudEventType.THEME_CHANGED, color="mauve"))

    assert hud.state.theme_color == "cyan"


def test_chat_history_keeps_order_and_ids():
    hud = HudStore()

    first = hud.append_chat(Sender.LOCAL, "hello")
    second = hud.append_chat(Sender.REMOTE, "hi there")

    assert [m.text for m in hud.chat_history] == ["hello", "hi there"]
    assert first.id != second.id
    assert len(first.id) == 7
    assert hud.snapshot()["chat"][1] == {"id": second.id, "sender": "assistant", "text": "hi there"}


def test_disconnect_zeroes_level():
    hud = HudStore()
    hud.apply(LevelChanged(event_type=HudEventType.LEVEL_CHANGED, level=0.8))
    assert hud.level == pytest.approx(0.8)

    hud.apply(
        ConnectionChanged(
            event_type=HudEventType.CONNECTION_CHANGED,
            is_connected=False,
            is_listening=False,
        )
    )
    assert hud.level == 0.0


def test_subscribers_notified_until_unsubscribed():
    hud = HudStore()
    seen: list[HudEvent] = []

    unsubscribe = hud.subscribe(seen.append)
    hud.append_chat(Sender.LOCAL, "one")
    unsubscribe()
    hud.append_chat(Sender.LOCAL, "two")

    assert len(seen) == 1
    assert seen[0].event_type is HudEventType.CHAT_APPENDED


def test_failing_listener_is_logged_not_raised(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(state_mod, "log_event", emitted.append)

    def broken(_: HudEvent) -> None:
        raise RuntimeError("renderer gone")

    hud = HudStore()
    hud.subscribe(broken)
    hud.append_chat(Sender.REMOTE, "still recorded")

    assert [m.text for m in hud.chat_history] == ["still recorded"]
    assert emitted[0]["event_type"] == "hud_listener_error"
