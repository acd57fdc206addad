from __future__ import annotations
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from fcp.message import Message


class FcpError(Exception):
    """Base class for every error raised by the FCP client."""
    pass


class TransportError(FcpError):
    """Raised when the underlying byte stream fails (open, read, write, shutdown).

    The originating OSError is chained as ``__cause__``.
    """
    pass


class ConnectionClosedError(TransportError):
    """Raised when the node closes the stream before a message is complete."""
    pass


class NotConnectedError(FcpError):
    """Raised when a session is used before it was connected."""
    pass


class ProtocolError(FcpError):
    """Raised on unexpected or malformed messages from the node."""

    def __init__(self, detail: str, message: Optional["Message"] = None) -> None:
        super().__init__(detail)
        self.message = message
