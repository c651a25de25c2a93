"""
HUD event definitions.

Rules:
- Events describe facts the session engine wants the HUD to reflect.
- Events carry data only (no behavior).
- HudStore is the only consumer that applies them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HudEventType(str, Enum):
    """Canonical HUD event types."""

    CONNECTION_CHANGED = "CONNECTION_CHANGED"
    THEME_CHANGED = "THEME_CHANGED"
    LOCK_CHANGED = "LOCK_CHANGED"
    DIAGNOSTIC_CHANGED = "DIAGNOSTIC_CHANGED"
    CHAT_APPENDED = "CHAT_APPENDED"
    LEVEL_CHANGED = "LEVEL_CHANGED"


class Sender(str, Enum):
    """Who spoke a chat message."""

    LOCAL = "user"
    REMOTE = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """Committed utterance. Appended to history, never mutated."""
    id: str
    sender: Sender
    text: str


@dataclass(frozen=True)
class HudEvent:
    """Base event type."""

    event_type: HudEventType


@dataclass(frozen=True)
class ConnectionChanged(HudEvent):
    """Session opened or closed."""
    is_connected: bool
    is_listening: bool


@dataclass(frozen=True)
class ThemeChanged(HudEvent):
    """Theme colour selected by a tool call."""
    color: str


@dataclass(frozen=True)
class LockChanged(HudEvent):
    """Interface locked or unlocked by a tool call."""
    is_locked: bool
    reason: str | None = None


@dataclass(frozen=True)
class DiagnosticChanged(HudEvent):
    """Diagnostic run started or finished."""
    is_running: bool
    mode: str | None = None


@dataclass(frozen=True)
class ChatAppended(HudEvent):
    """A transcript turn was committed."""
    message: ChatMessage


@dataclass(frozen=True)
class LevelChanged(HudEvent):
    """Output level reading (cosmetic)."""
    level: float
