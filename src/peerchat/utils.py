"""
PeerChat - Utility functions.

Provides address parsing, formatting and validation helpers shared by the
wire codec, the configuration loader and the interactive menu.
"""

import ipaddress
import logging
from typing import Tuple

from .errors import ErrorCode, PeerChatError

logger = logging.getLogger(__name__)


def format_address(ip: str, port: int) -> str:
    """Serialize an ``(ip, port)`` pair as the ``"ip:port"`` peer key."""
    return f"{ip}:{int(port)}"


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split an ``"ip:port"`` peer key into its parts.

    The split happens on the last colon so that the host part may itself
    contain colons.

    Args:
        address: Peer address string

    Returns:
        Tuple of (ip, port)

    Raises:
        PeerChatError: If the address has no port or the port is not a number
    """
    host, sep, port_text = address.rpartition(":")
    if not sep or not host:
        raise PeerChatError(
            ErrorCode.E102_INVALID_ADDRESS,
            f"Address '{address}' is not of the form ip:port",
            {"address": address},
        )
    try:
        port = int(port_text)
    except ValueError:
        raise PeerChatError(
            ErrorCode.E102_INVALID_ADDRESS,
            f"Port '{port_text}' in address '{address}' is not a number",
            {"address": address},
        ) from None
    if not validate_port(port):
        raise PeerChatError(
            ErrorCode.E102_INVALID_ADDRESS,
            f"Port {port} in address '{address}' is out of range",
            {"address": address},
        )
    return host, port


def validate_port(port: int) -> bool:
    """
    Validate a TCP port number.

    Args:
        port: Port number to validate

    Returns:
        True if valid, False otherwise
    """
    return 1 <= port <= 65535


def validate_ip(ip: str) -> bool:
    """
    Validate an IPv4 or IPv6 address literal.

    Unlike a discovery layer, the node talks to whatever address the user
    types, so loopback and private ranges are accepted. Only malformed and
    unspecified addresses are rejected.

    Args:
        ip: IP address string

    Returns:
        True if valid, False otherwise
    """
    try:
        ip_obj = ipaddress.ip_address(ip)
    except ValueError:
        logger.debug(f"Rejected IP address '{ip}'")
        return False
    return not ip_obj.is_unspecified


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate a string to a maximum length, adding suffix if truncated.

    Args:
        text: String to truncate
        max_length: Maximum length (including suffix)
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
