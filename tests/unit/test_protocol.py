"""
PeerChat - Wire protocol tests.

Tests for encoding, decoding and classifying flat-text messages.
"""

import pytest

from peerchat.errors import ErrorCode, MalformedMessage
from peerchat.protocol import Identity, Message, MessageKind, Protocol, classify


def test_encode_layout():
    """Encoded messages are '<address> <team> <payload>'."""
    assert Protocol.encode("127.0.0.1:5000", "Alpha", "hello") == "127.0.0.1:5000 Alpha hello"


def test_frame_terminates_line():
    data = Protocol.frame("127.0.0.1:5000", "Alpha", "hello there")
    assert data == b"127.0.0.1:5000 Alpha hello there\n"


@pytest.mark.parametrize(
    "payload",
    ["hello", "hello there, how are you?", "connect", "EXIT", "ünïcödé text"],
)
def test_decode_inverts_encode(payload):
    """decode(encode(sender, team, payload)) gives back the same triple."""
    line = Protocol.encode("10.0.0.7:6555", "Beta", payload)
    assert Protocol.decode(line) == Message("10.0.0.7:6555", "Beta", payload)


def test_decode_rejoins_payload_with_single_spaces():
    message = Protocol.decode("127.0.0.1:5000   Alpha  many   spaced\twords  ")
    assert message.sender == "127.0.0.1:5000"
    assert message.team_name == "Alpha"
    assert message.payload == "many spaced words"


@pytest.mark.parametrize("line", ["", "   ", "127.0.0.1:5000", "127.0.0.1:5000 Alpha"])
def test_decode_rejects_short_lines(line):
    """Fewer than three tokens is a malformed message."""
    with pytest.raises(MalformedMessage) as exc_info:
        Protocol.decode(line)
    assert exc_info.value.code == ErrorCode.E101_MALFORMED_MESSAGE


@pytest.mark.parametrize("sender", ["no-port", "127.0.0.1:http", "127.0.0.1:70000", ":5000"])
def test_decode_rejects_bad_sender_address(sender):
    with pytest.raises(MalformedMessage):
        Protocol.decode(f"{sender} Alpha hello")


def test_decode_normalizes_port():
    assert Protocol.decode("127.0.0.1:05000 Alpha hi").sender == "127.0.0.1:5000"


def test_encode_rejects_multi_word_team_name():
    with pytest.raises(ValueError):
        Protocol.encode("127.0.0.1:5000", "Team Alpha", "hello")
    with pytest.raises(ValueError):
        Protocol.encode("127.0.0.1:5000", "", "hello")


@pytest.mark.parametrize(
    "payload,kind",
    [
        ("connect", MessageKind.CONNECT),
        ("CONNECT", MessageKind.CONNECT),
        ("Connected", MessageKind.CONNECTED),
        ("exit", MessageKind.EXIT),
        ("ExIt", MessageKind.EXIT),
        ("exit now", MessageKind.DATA),
        ("connecting", MessageKind.DATA),
        ("hello", MessageKind.DATA),
    ],
)
def test_classify_control_tokens(payload, kind):
    """Control tokens match case-insensitively and only as the whole payload."""
    assert classify(payload) is kind


def test_message_is_control():
    assert Message("127.0.0.1:1", "A", "exit").is_control
    assert not Message("127.0.0.1:1", "A", "hi").is_control


def test_identity_frame():
    identity = Identity("Alpha", "127.0.0.1", 5000)
    assert identity.address == "127.0.0.1:5000"
    assert identity.frame("connected") == b"127.0.0.1:5000 Alpha connected\n"
