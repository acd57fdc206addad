from __future__ import annotations
import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Union

from fcp.errors import ConnectionClosedError, ProtocolError, TransportError

END_MESSAGE = "EndMessage"
EXPECTED_VERSION = "2.0"
ENCODING = "utf-8"


class MessageName(str, Enum):
    """Message names the client itself relies on."""

    CLIENT_HELLO = "ClientHello"   # handshake request
    NODE_HELLO = "NodeHello"       # handshake reply


class LineReader(Protocol):
    def readline(self) -> Union[bytes, str]: ...


@dataclass
class Message:
    """
    An FCP message: a name plus key/value fields.

    Wire form:
    <name>
    <key>=<value>
    ...
    EndMessage

    Fields keep insertion order, so encoding is reproducible. The node parses
    by key, never by position. No escaping is applied: a key containing '='
    or a value containing a newline breaks framing (protocol limitation).
    """
    name: str
    fields: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("message name must be a non-empty string")
        if "\n" in self.name:
            raise ValueError(f"message name must not contain a newline: {self.name!r}")
        self.fields = {str(k): str(v) for k, v in self.fields.items()}

    def add_field(self, key: str, value: Any) -> None:
        """Add a field, overwriting an existing field with the same key."""
        self.fields[str(key)] = str(value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self.fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def to_field_set(self) -> str:
        """Render the message into the text sent over the wire"""
        lines = [self.name]
        lines.extend(f"{key}={value}" for key, value in self.fields.items())
        lines.append(END_MESSAGE)
        return "\n".join(lines) + "\n"

    def to_bytes(self) -> bytes:
        return self.to_field_set().encode(ENCODING)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Message":
        """Decode a single message from an in-memory buffer"""
        return decode_message(io.BytesIO(data))


def create_message(name: str, fields: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Message:
    """Helper to build a message from a mapping and/or keyword fields"""
    message = Message(name=name)
    for key, value in (fields or {}).items():
        message.add_field(key, value)
    for key, value in kwargs.items():
        message.add_field(key, value)
    return message


def client_hello(client_name: str) -> Message:
    return create_message(
        MessageName.CLIENT_HELLO.value,
        {"Name": client_name, "ExpectedVersion": EXPECTED_VERSION},
    )


# ========================================
#           WIRE CODEC
# ========================================

def encode_message(message: Message) -> bytes:
    return message.to_bytes()


def _read_line(reader: LineReader) -> str:
    """Read one line, raising ConnectionClosedError at end of stream."""
    raw = reader.readline()
    if isinstance(raw, bytes):
        try:
            line = raw.decode(ENCODING)
        except UnicodeDecodeError as e:
            raise TransportError(f"stream is not valid {ENCODING}: {e}") from e
    else:
        line = raw
    if not line:
        raise ConnectionClosedError("stream closed before end of message")
    return line[:-1] if line.endswith("\n") else line


def decode_message(reader: LineReader) -> Message:
    """
    Read exactly one message from a line source.

    The first line is the name. Each following line containing '=' is split
    at its first '=' into key and value. The first line without '=' (the
    EndMessage terminator) ends the message and is consumed, not stored.
    Payload blocks after the field set are not understood.

    OSError from the reader propagates unchanged.
    """
    name = _read_line(reader)
    if not name:
        raise ProtocolError("received message with empty name")

    message = Message(name=name)
    while True:
        line = _read_line(reader)
        key, sep, value = line.partition("=")
        if not sep:
            break
        message.fields[key] = value
    return message
