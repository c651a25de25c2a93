"""
Per-turn transcript accumulation.

Responsibilities:
- Buffer incremental transcription deltas per speaker channel
- Commit completed utterances on turn boundaries

Invariants:
- Exactly one buffer per channel
- Both buffers are reset on every commit (committed or not)
- Whitespace-only text is never committed

Non-responsibilities:
- No chat history (HudStore owns it)
- No normalization of delta text
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Channel(str, Enum):
    """Transcript source."""

    LOCAL = "local"    # microphone / user
    REMOTE = "remote"  # synthesized peer speech


@dataclass(frozen=True)
class TurnCommit:
    """
    Result of a turn commit.

    A field is None when that channel had nothing worth committing.
    Falsy when both are None.
    """
    local_text: str | None = None
    remote_text: str | None = None

    def __bool__(self) -> bool:
        return self.local_text is not None or self.remote_text is not None


class TranscriptAccumulator:
    """
    Two independent text buffers, both starting empty.

    Mutated only by the session that owns it.
    """

    def __init__(self) -> None:
        self._buffers: dict[Channel, str] = {
            Channel.LOCAL: "",
            Channel.REMOTE: "",
        }

    def append_delta(self, channel: Channel, text: str) -> None:
        """Concatenate text onto the channel buffer, in arrival order."""
        if not text:
            return
        self._buffers[channel] += text

    def commit_turn(self) -> TurnCommit:
        """
        Commit and reset both buffers.

        Returns the accumulated text (untrimmed) for each channel whose
        trimmed content is non-empty.
        """
        local = self._take(Channel.LOCAL)
        remote = self._take(Channel.REMOTE)
        return TurnCommit(local_text=local, remote_text=remote)

    def pending(self, channel: Channel) -> str:
        """Current uncommitted text for a channel (read-only view)."""
        return self._buffers[channel]

    def reset(self) -> None:
        """Drop any uncommitted text (session teardown)."""
        for channel in self._buffers:
            self._buffers[channel] = ""

    def _take(self, channel: Channel) -> str | None:
        text = self._buffers[channel]
        self._buffers[channel] = ""
        return text if text.strip() else None
