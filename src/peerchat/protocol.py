"""
PeerChat - Wire protocol definitions.

Every message travels as a single line of text:

    <senderIp>:<senderPort> <teamName> <payload>

The payload is either one of the control tokens (connect, connected, exit,
matched case-insensitively) or free text. Free text may contain spaces;
everything after the second whitespace-separated token belongs to it and is
re-joined with single spaces when decoded.

Lines are terminated by a newline on the wire.
"""

from dataclasses import dataclass
from enum import Enum

from .constants import (
    LINE_TERMINATOR,
    TOKEN_CONNECT,
    TOKEN_CONNECTED,
    TOKEN_EXIT,
    WIRE_ENCODING,
)
from .errors import MalformedMessage, PeerChatError
from .utils import format_address, parse_address, truncate_string


class MessageKind(Enum):
    """How the router should treat a decoded payload."""

    CONNECT = TOKEN_CONNECT
    CONNECTED = TOKEN_CONNECTED
    EXIT = TOKEN_EXIT
    DATA = "data"


_CONTROL_KINDS = {
    TOKEN_CONNECT: MessageKind.CONNECT,
    TOKEN_CONNECTED: MessageKind.CONNECTED,
    TOKEN_EXIT: MessageKind.EXIT,
}


def classify(payload: str) -> MessageKind:
    """Map a payload to its message kind."""
    return _CONTROL_KINDS.get(payload.strip().lower(), MessageKind.DATA)


@dataclass(frozen=True)
class Message:
    """A decoded wire message."""

    sender: str
    team_name: str
    payload: str

    @property
    def kind(self) -> MessageKind:
        return classify(self.payload)

    @property
    def is_control(self) -> bool:
        return self.kind is not MessageKind.DATA


@dataclass(frozen=True)
class Identity:
    """This node's own name and advertised address."""

    name: str
    ip: str
    port: int

    @property
    def address(self) -> str:
        return format_address(self.ip, self.port)

    def frame(self, payload: str) -> bytes:
        """Encode ``payload`` stamped with this identity."""
        return Protocol.frame(self.address, self.name, payload)


class Protocol:
    """Flat-text wire codec."""

    @staticmethod
    def encode(sender: str, team_name: str, payload: str) -> str:
        """
        Build the text of one wire message (without the line terminator).

        Args:
            sender: Sender address ("ip:port")
            team_name: Sender display name; must be a single token
            payload: Control token or free text

        Returns:
            Encoded message line

        Raises:
            ValueError: If the team name is empty or contains whitespace
        """
        if not team_name or len(team_name.split()) != 1:
            raise ValueError(f"Team name must be a single non-empty token, got {team_name!r}")
        return f"{sender} {team_name} {payload}"

    @staticmethod
    def frame(sender: str, team_name: str, payload: str) -> bytes:
        """Encode a message and terminate it for the wire."""
        line = Protocol.encode(sender, team_name, payload)
        return (line + LINE_TERMINATOR).encode(WIRE_ENCODING)

    @staticmethod
    def decode(line: str) -> Message:
        """
        Parse one wire line.

        Raises:
            MalformedMessage: If fewer than three tokens are present or the
                first token is not an ip:port address
        """
        parts = line.split()
        if len(parts) < 3:
            raise MalformedMessage(truncate_string(line, 80))

        sender, team_name, *payload_parts = parts
        try:
            ip, port = parse_address(sender)
        except PeerChatError as e:
            raise MalformedMessage(truncate_string(line, 80), e.message) from None

        return Message(format_address(ip, port), team_name, " ".join(payload_parts))
