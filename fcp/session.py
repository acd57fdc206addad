from __future__ import annotations
import socket
from contextlib import suppress
from enum import Enum
from typing import BinaryIO, Optional, Tuple

from fcp.errors import NotConnectedError, ProtocolError, TransportError
from fcp.log import get_logger, log_fcp_message
from fcp.message import Message, MessageName, client_hello, decode_message

logger = get_logger(__name__)

DEFAULT_PORT = 9481


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ClientSession:
    """
    A connection to a Freenet node.

    The session owns exactly one TCP socket while connected. ``connect``
    performs the ClientHello/NodeHello handshake; only after it succeeded are
    other messages meaningful. Use the session as a context manager so the
    socket is released on every exit path:

        with ClientSession("localhost") as session:
            session.connect("my-client")
            session.send_message(create_message("ListPeers"))
            reply = session.receive_message()

    Not thread-safe: callers sharing a session between threads must
    serialize send/receive themselves.
    """

    def __init__(self, host: str, port: int = DEFAULT_PORT, *, timeout: Optional[float] = None) -> None:
        self._host = host
        self._port = int(port)
        self.timeout = timeout
        self._sock: Optional[socket.socket] = None
        self._reader: Optional[BinaryIO] = None
        self.node_hello: Optional[Message] = None

    @classmethod
    def default(cls, host: str) -> "ClientSession":
        """Session to a node on the given host using the default FCP port"""
        return cls(host, DEFAULT_PORT)

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def address(self) -> Tuple[str, int]:
        return (self._host, self._port)

    @property
    def state(self) -> SessionState:
        return SessionState.CONNECTED if self._sock is not None else SessionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    def __repr__(self) -> str:
        return f"ClientSession(host={self._host!r}, port={self._port}, state={self.state.value})"

    # ========================================
    #           LIFECYCLE
    # ========================================

    def connect(self, client_name: str) -> Message:
        """
        Open the connection and perform the handshake.

        Sends ClientHello with the given client name and expects NodeHello
        back, which is returned and kept as ``node_hello``.

        Raises:
            TransportError: the socket could not be opened, or I/O failed
                during the handshake.
            ProtocolError: the node answered with anything but NodeHello.
                The socket stays open; the caller must disconnect.
        """
        if self._sock is not None:
            logger.debug("Reconnecting; releasing existing stream", extra={"peer": self._peer()})
            self.close()

        try:
            sock = socket.create_connection(self.address, timeout=self.timeout)
        except OSError as e:
            raise TransportError(f"could not connect to {self._peer()}: {e}") from e

        self._sock = sock
        self._reader = sock.makefile("rb")
        self.node_hello = None
        logger.debug("Connected, starting handshake", extra={"peer": self._peer(), "client": client_name})

        self.send_message(client_hello(client_name))
        reply = self.receive_message()
        if reply.name != MessageName.NODE_HELLO.value:
            raise ProtocolError(
                f"expected {MessageName.NODE_HELLO.value}, node sent {reply.name}",
                message=reply,
            )

        self.node_hello = reply
        log_fcp_message(logger, "debug", "Handshake complete", message=reply,
                        peer=self._peer(), node=reply.get("Node"))
        return reply

    def disconnect(self) -> None:
        """
        Shut down both directions of the stream and release it.

        Does nothing when not connected. The session is disconnected
        afterwards even if the shutdown itself fails; that failure is
        raised as TransportError.
        """
        sock, reader = self._sock, self._reader
        if sock is None:
            return
        self._sock = None
        self._reader = None
        self.node_hello = None

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            raise TransportError(f"error shutting down connection to {self._peer()}: {e}") from e
        finally:
            if reader is not None:
                with suppress(OSError):
                    reader.close()
            sock.close()
            logger.debug("Disconnected", extra={"peer": self._peer()})

    def close(self) -> None:
        """Best-effort disconnect; a failing shutdown is logged, never raised"""
        try:
            self.disconnect()
        except TransportError as e:
            logger.debug("Ignoring error during teardown: %s", e, extra={"peer": self._peer()})

    def __enter__(self) -> "ClientSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_sock", None) is not None:
            self.close()

    # ========================================
    #           MESSAGES
    # ========================================

    def send_message(self, message: Message) -> None:
        """
        Encode the message and write it to the node in one operation.

        Raises:
            NotConnectedError: the session is not connected.
            TransportError: the write failed. The session is not reset;
                disconnect and reconnect to continue.
        """
        sock = self._require_connected()
        try:
            sock.sendall(message.to_bytes())
        except OSError as e:
            raise TransportError(f"error sending {message.name}: {e}") from e
        log_fcp_message(logger, "debug", "Sent message", message=message, peer=self._peer())

    def receive_message(self) -> Message:
        """
        Block until one complete message has been read from the node.

        Messages carrying a data payload are not supported. No timeout is
        applied beyond the socket timeout given at construction.

        Raises:
            NotConnectedError: the session is not connected.
            TransportError: reading failed or the node closed the stream.
            ProtocolError: the node sent a message without a name.
        """
        self._require_connected()
        try:
            message = decode_message(self._reader)
        except OSError as e:
            raise TransportError(f"error receiving message: {e}") from e
        log_fcp_message(logger, "debug", "Received message", message=message, peer=self._peer())
        return message

    def _require_connected(self) -> socket.socket:
        if self._sock is None:
            raise NotConnectedError(f"session to {self._peer()} is not connected")
        return self._sock

    def _peer(self) -> str:
        return f"{self._host}:{self._port}"
