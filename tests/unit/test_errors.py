"""
PeerChat - Error classification tests.
"""

import errno

import pytest

from peerchat.errors import (
    ErrorCode,
    FailureKind,
    HandshakeTimeout,
    MalformedMessage,
    SendFailure,
)

TARGET = "10.0.0.9:6555"


def test_connection_refused():
    failure = SendFailure.from_os_error(ConnectionRefusedError(errno.ECONNREFUSED, "refused"), TARGET)
    assert failure.kind is FailureKind.CONNECTION_REFUSED
    assert failure.code == ErrorCode.E201_CONNECTION_REFUSED
    assert "10.0.0.9:6555 is not available" in failure.message


@pytest.mark.parametrize(
    "code,kind,text",
    [
        (errno.EHOSTUNREACH, FailureKind.HOST_UNREACHABLE, "Cannot reach host 10.0.0.9"),
        (errno.ENETUNREACH, FailureKind.NETWORK_UNREACHABLE, "Network is unreachable"),
    ],
)
def test_unreachable(code, kind, text):
    failure = SendFailure.from_os_error(OSError(code, "unreachable"), TARGET)
    assert failure.kind is kind
    assert text in failure.message
    assert failure.address == TARGET


def test_other_errors_keep_reason():
    failure = SendFailure.from_os_error(OSError("boom"), TARGET)
    assert failure.kind is FailureKind.OTHER
    assert "boom" in failure.reason
    assert failure.to_dict()["details"] == {"address": TARGET, "kind": "other"}


def test_handshake_timeout_message():
    error = HandshakeTimeout(TARGET, 5.0)
    assert error.code == ErrorCode.E209_HANDSHAKE_TIMEOUT
    assert error.message == f"Connection request to {TARGET} timed out after 5s"


def test_malformed_message_keeps_line():
    error = MalformedMessage("garbage")
    assert error.line == "garbage"
    assert str(error).startswith("[E101]")
