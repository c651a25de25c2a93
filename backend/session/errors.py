"""
Session-level error taxonomy.

Fatal to connect():
- CaptureError   (microphone / permission unavailable)
- HandshakeError (peer rejected or never acknowledged setup)

Caller misuse:
- SessionStateError (connect while a session is not DISCONNECTED)

Transport failures while OPEN are transport.base.TransportError; they end
the session but are never raised out of the receive path.
"""


class SessionError(Exception):
    """Base class for session errors."""


class SessionStateError(SessionError):
    """Raised when an operation is not valid in the current session state."""


class CaptureError(SessionError):
    """
    Raised when local audio capture cannot be acquired.

    The session stays DISCONNECTED; not retried automatically.
    """


class HandshakeError(SessionError):
    """
    Raised when the remote handshake fails or times out.

    The session stays DISCONNECTED; not retried automatically.
    """
