"""
Freenet Client Protocol (FCP) client

The protocol used between a Freenet node and its client applications:
line-oriented text messages over one persistent TCP connection, opened with
a ClientHello/NodeHello handshake.
"""

from fcp.errors import (
    ConnectionClosedError,
    FcpError,
    NotConnectedError,
    ProtocolError,
    TransportError,
)
from fcp.message import (
    END_MESSAGE,
    EXPECTED_VERSION,
    Message,
    MessageName,
    create_message,
    decode_message,
    encode_message,
)
from fcp.session import DEFAULT_PORT, ClientSession, SessionState

__version__ = "0.1.0"

__all__ = [
    "ClientSession",
    "ConnectionClosedError",
    "DEFAULT_PORT",
    "END_MESSAGE",
    "EXPECTED_VERSION",
    "FcpError",
    "Message",
    "MessageName",
    "NotConnectedError",
    "ProtocolError",
    "SessionState",
    "TransportError",
    "create_message",
    "decode_message",
    "encode_message",
]
