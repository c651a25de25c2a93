"""
Duplex channel contract.

This module defines the *interface only*.

Key invariants:
- One channel == one live session connection.
- send() is safe to call from concurrent tasks; implementations
  serialize at this boundary so callers never coordinate.
- receive() yields raw inbound frames in arrival order and ends
  normally on a clean peer close.
- Anything else that goes wrong surfaces as TransportError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Mapping


class TransportError(Exception):
    """
    Raised when the channel cannot be opened, used, or fails mid-stream.

    Fatal to the session that owns the channel.
    """


class DuplexChannel(ABC):
    """Reliable, ordered, bidirectional message stream."""

    @abstractmethod
    async def open(self) -> None:
        """
        Establish the connection.

        Raises:
            TransportError if the connection cannot be established.
        """
        raise NotImplementedError

    @abstractmethod
    async def send(self, message: Mapping[str, Any]) -> None:
        """
        Send one JSON-serializable message.

        Raises:
            TransportError if the channel is closed or the send fails.
        """
        raise NotImplementedError

    @abstractmethod
    def receive(self) -> AsyncIterator[str | bytes]:
        """
        Iterate inbound frames until the peer closes.

        Raises (from iteration):
            TransportError on abnormal termination.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Idempotent; never raises."""
        raise NotImplementedError
