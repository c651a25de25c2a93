"""
Live session lifecycle states.

DISCONNECTED -> CONNECTING -> OPEN -> DISCONNECTED

This is pure data owned by SessionProtocol. Whether the last session
ended cleanly or on an error is tracked separately (Session.error).
"""
from enum import Enum

class SessionState(str, Enum):
    """
    Connection lifecycle of the single live session.

    Only one connection attempt may be in flight at a time.
    """
    DISCONNECTED = "DISCONNECTED"  # No session; initial and terminal
    CONNECTING = "CONNECTING"      # Capture/output/handshake in progress
    OPEN = "OPEN"                  # Streaming in both directions
