"""
PeerChat - Custom Exception Classes and Error Codes

This module defines the exceptions and error codes used throughout the
node. Each error has a unique code for logging and debugging.

Protocol-level errors (MalformedMessage) are absorbed by the session layer;
connection-level errors (SendFailure, HandshakeTimeout) are surfaced to the
caller that started the operation and are never fatal to the node.
"""

import errno
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all PeerChat error codes."""

    # General Errors (E001-E099)
    E001_UNKNOWN_ERROR = "E001"
    E002_INVALID_ARGUMENT = "E002"

    # Protocol Errors (E100-E199)
    E100_PROTOCOL_ERROR = "E100"
    E101_MALFORMED_MESSAGE = "E101"
    E102_INVALID_ADDRESS = "E102"

    # Network Errors (E200-E299)
    E200_NETWORK_ERROR = "E200"
    E201_CONNECTION_REFUSED = "E201"
    E202_HOST_UNREACHABLE = "E202"
    E203_NETWORK_UNREACHABLE = "E203"
    E204_SEND_FAILED = "E204"
    E209_HANDSHAKE_TIMEOUT = "E209"

    # Config Errors (E700-E799)
    E700_CONFIG_ERROR = "E700"
    E701_CONFIG_LOAD_FAILED = "E701"
    E703_INVALID_CONFIG = "E703"
    E704_CONFIG_PARSE_ERROR = "E704"

    # Server Errors (E800-E899)
    E800_SERVER_ERROR = "E800"
    E801_SERVER_START_FAILED = "E801"
    E803_SERVER_NOT_RUNNING = "E803"


class PeerChatError(Exception):
    """Base exception class for all PeerChat errors.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {"code": self.code.value, "message": self.message, "details": self.details}


class MalformedMessage(PeerChatError):
    """Raised when a wire line cannot be decoded.

    The session layer drops such input without touching the registry.
    """

    def __init__(self, line: str, reason: str = "expected '<ip:port> <team> <payload>'"):
        super().__init__(
            ErrorCode.E101_MALFORMED_MESSAGE,
            f"Malformed message: {reason}",
            {"line": line},
        )
        self.line = line


class NetworkError(PeerChatError):
    """Exception raised for network operation failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E200_NETWORK_ERROR,
        message: str = "Network operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class FailureKind(Enum):
    """Classification of outbound connection failures."""

    CONNECTION_REFUSED = "connection_refused"
    HOST_UNREACHABLE = "host_unreachable"
    NETWORK_UNREACHABLE = "network_unreachable"
    OTHER = "other"


_KIND_CODES = {
    FailureKind.CONNECTION_REFUSED: ErrorCode.E201_CONNECTION_REFUSED,
    FailureKind.HOST_UNREACHABLE: ErrorCode.E202_HOST_UNREACHABLE,
    FailureKind.NETWORK_UNREACHABLE: ErrorCode.E203_NETWORK_UNREACHABLE,
    FailureKind.OTHER: ErrorCode.E204_SEND_FAILED,
}


class SendFailure(NetworkError):
    """An outbound send could not be completed.

    Attributes:
        kind: FailureKind describing why
        address: Target peer address ("ip:port")
    """

    def __init__(self, kind: FailureKind, address: str, reason: str):
        self.kind = kind
        self.address = address
        self.reason = reason
        super().__init__(
            _KIND_CODES[kind],
            f"Failed to send message: {reason}",
            {"address": address, "kind": kind.value},
        )

    @classmethod
    def from_os_error(cls, exc: BaseException, address: str) -> "SendFailure":
        """Classify a socket-level exception raised while reaching ``address``."""
        host = address.rsplit(":", 1)[0]
        code = getattr(exc, "errno", None)

        if isinstance(exc, ConnectionRefusedError) or code == errno.ECONNREFUSED:
            return cls(
                FailureKind.CONNECTION_REFUSED,
                address,
                f"Peer {address} is not available or not listening",
            )
        if code == errno.EHOSTUNREACH:
            return cls(FailureKind.HOST_UNREACHABLE, address, f"Cannot reach host {host}")
        if code == errno.ENETUNREACH:
            return cls(FailureKind.NETWORK_UNREACHABLE, address, "Network is unreachable")

        reason = str(exc) or exc.__class__.__name__
        return cls(FailureKind.OTHER, address, f"{reason} ({address})")


class HandshakeTimeout(NetworkError):
    """No ``connected`` acknowledgement arrived within the handshake window."""

    def __init__(self, address: str, timeout: float):
        self.address = address
        self.timeout = timeout
        super().__init__(
            ErrorCode.E209_HANDSHAKE_TIMEOUT,
            f"Connection request to {address} timed out after {timeout:g}s",
            {"address": address, "timeout": timeout},
        )


class ConfigError(PeerChatError):
    """Exception raised for configuration failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E700_CONFIG_ERROR,
        message: str = "Configuration operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ServerError(PeerChatError):
    """Exception raised for listener start-up and lifecycle failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E800_SERVER_ERROR,
        message: str = "Server operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
