"""
HUD state store.

Per the session design:
- Holds the HUD snapshot and the ordered chat history
- Mutated only through HudEvents raised by the session engine
- Read-only for everyone else (renderers subscribe for snapshots)
- Contains no session logic
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, replace
from typing import Any, Callable

from hud.events import (
    ChatAppended,
    ChatMessage,
    ConnectionChanged,
    DiagnosticChanged,
    HudEvent,
    HudEventType,
    LevelChanged,
    LockChanged,
    Sender,
    ThemeChanged,
)
from observability.logger import log_event
from spec import CHAT_MESSAGE_ID_CHARS, THEME_COLOR_DEFAULT, THEME_COLORS


Listener = Callable[[HudEvent], None]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_message_id() -> str:
    """Short random chat message id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(CHAT_MESSAGE_ID_CHARS))


@dataclass(frozen=True)
class HudState:
    """Immutable HUD snapshot."""
    is_listening: bool = False
    is_connected: bool = False
    theme_color: str = THEME_COLOR_DEFAULT
    is_diagnostic_running: bool = False
    is_system_locked: bool = False


class HudStore:
    """
    Mutable holder of the current HudState and chat history.

    apply() is the single mutation entry point.
    """

    def __init__(self, initial: HudState | None = None) -> None:
        self._state = initial or HudState()
        self._chat: list[ChatMessage] = []
        self._level: float = 0.0
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> HudState:
        return self._state

    @property
    def chat_history(self) -> tuple[ChatMessage, ...]:
        return tuple(self._chat)

    @property
    def level(self) -> float:
        return self._level

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view for renderers."""
        return {
            "isListening": self._state.is_listening,
            "isConnected": self._state.is_connected,
            "themeColor": self._state.theme_color,
            "isDiagnosticRunning": self._state.is_diagnostic_running,
            "isSystemLocked": self._state.is_system_locked,
            "volume": round(self._level, 3),
            "chat": [
                {"id": m.id, "sender": m.sender.value, "text": m.text}
                for m in self._chat
            ],
        }

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def append_chat(self, sender: Sender, text: str) -> ChatMessage:
        """Convenience wrapper: build and apply a ChatAppended event."""
        message = ChatMessage(id=new_message_id(), sender=sender, text=text)
        self.apply(ChatAppended(event_type=HudEventType.CHAT_APPENDED, message=message))
        return message

    def apply(self, event: HudEvent) -> None:
        """
        Apply a single event and notify listeners.

        Raises:
            ValueError for a theme colour outside THEME_COLORS.
        """
        if isinstance(event, ConnectionChanged):
            self._state = replace(
                self._state,
                is_connected=event.is_connected,
                is_listening=event.is_listening,
            )
            if not event.is_connected:
                self._level = 0.0

        elif isinstance(event, ThemeChanged):
            if event.color not in THEME_COLORS:
                raise ValueError(f"unknown theme color: {event.color!r}")
            self._state = replace(self._state, theme_color=event.color)

        elif isinstance(event, LockChanged):
            self._state = replace(self._state, is_system_locked=event.is_locked)

        elif isinstance(event, DiagnosticChanged):
            self._state = replace(self._state, is_diagnostic_running=event.is_running)

        elif isinstance(event, ChatAppended):
            self._chat.append(event.message)

        elif isinstance(event, LevelChanged):
            self._level = max(0.0, event.level)

        else:
            log_event({
                "event_type": "hud_event_ignored",
                "hud_event": type(event).__name__,
            })
            return

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "hud_listener_error",
                    "hud_event": event.event_type.value,
                    "error": f"{type(exc).__name__}: {exc}",
                })
