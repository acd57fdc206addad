import io

import pytest

from fcp.errors import ConnectionClosedError, ProtocolError, TransportError
from fcp.message import (
    END_MESSAGE,
    Message,
    MessageName,
    client_hello,
    create_message,
    decode_message,
    encode_message,
)


def test_encode_client_hello():
    message = create_message("ClientHello", {"Name": "TestClient", "ExpectedVersion": "2.0"})

    assert encode_message(message) == b"ClientHello\nName=TestClient\nExpectedVersion=2.0\nEndMessage\n"


def test_encode_without_fields():
    assert encode_message(Message("Void")) == b"Void\nEndMessage\n"


def test_client_hello_helper():
    hello = client_hello("TestClient")

    assert hello.name == MessageName.CLIENT_HELLO.value
    assert hello.fields == {"Name": "TestClient", "ExpectedVersion": "2.0"}


def test_decode_node_hello():
    message = Message.from_bytes(b"NodeHello\nVersion=2.0\nNode=TestNode\nEndMessage\n")

    assert message.name == "NodeHello"
    assert message.fields == {"Version": "2.0", "Node": "TestNode"}


def test_decode_splits_at_first_equal_sign():
    message = Message.from_bytes(b"URIGenerated\nURI=KSK@a=b=c\nEndMessage\n")

    assert message["URI"] == "KSK@a=b=c"


def test_decode_keeps_empty_values():
    message = Message.from_bytes(b"Peer\nopennet=\nEndMessage\n")

    assert "opennet" in message
    assert message.get("opennet") == ""


def test_decode_stops_at_first_line_without_equal_sign():
    reader = io.BytesIO(b"DataFound\nIdentifier=1\nData\nNext\nEndMessage\n")

    message = decode_message(reader)

    assert message.name == "DataFound"
    assert message.fields == {"Identifier": "1"}
    # the terminating line is consumed, the rest is left in the stream
    assert reader.readline() == b"Next\n"


def test_decode_consumes_exactly_one_message():
    reader = io.BytesIO(b"First\nA=1\nEndMessage\nSecond\nB=2\nEndMessage\n")

    first = decode_message(reader)
    second = decode_message(reader)

    assert (first.name, first.fields) == ("First", {"A": "1"})
    assert (second.name, second.fields) == ("Second", {"B": "2"})


def test_decode_accepts_text_line_sources():
    message = decode_message(io.StringIO("NodeHello\nNode=Fred\nEndMessage\n"))

    assert message.name == "NodeHello"
    assert message["Node"] == "Fred"


@pytest.mark.parametrize("original", [
    create_message("ClientPut", URI="CHK@", Identifier="put-1", Verbosity=0, Global="false"),
    Message("ListPeers"),
    create_message("ModifyConfig", {"node.name": "", "logger.priority": ""}),
    create_message("ClientGet", URI="KSK@gpl.txt", Identifier="get 1", MaxRetries=-1),
    create_message("PeerNote", NoteText="caf\u00e9 \u2713", PeerNoteType="1"),
], ids=["fields", "no-fields", "empty-values", "spaces", "non-ascii"])
def test_round_trip_preserves_name_and_fields(original):
    decoded = Message.from_bytes(original.to_bytes())

    assert decoded.name == original.name
    assert decoded.fields == original.fields


def test_decode_eof_before_name():
    with pytest.raises(ConnectionClosedError):
        Message.from_bytes(b"")


def test_decode_eof_before_terminator():
    with pytest.raises(ConnectionClosedError):
        Message.from_bytes(b"NodeHello\nNode=Fred\n")


def test_decode_empty_name_is_protocol_error():
    with pytest.raises(ProtocolError):
        Message.from_bytes(b"\nA=1\nEndMessage\n")


def test_decode_invalid_utf8_is_transport_error():
    with pytest.raises(TransportError):
        Message.from_bytes(b"NodeHello\nNode=\xff\xfe\nEndMessage\n")


def test_read_failure_propagates():
    class BrokenReader:
        def readline(self):
            raise OSError("connection reset")

    with pytest.raises(OSError):
        decode_message(BrokenReader())


def test_message_name_must_not_be_empty():
    with pytest.raises(ValueError):
        Message("")


def test_message_name_must_be_single_line():
    with pytest.raises(ValueError):
        Message("Node\nHello")


def test_add_field_overwrites_and_stringifies():
    message = Message("ClientGet")
    message.add_field("MaxRetries", 3)
    message.add_field("MaxRetries", -1)

    assert message.fields == {"MaxRetries": "-1"}


def test_value_with_newline_is_not_escaped():
    # Known protocol limitation: framing breaks, nothing is escaped.
    message = create_message("Broken", Text="one\ntwo")

    assert message.to_field_set() == "Broken\nText=one\ntwo\n" + END_MESSAGE + "\n"
