"""
PeerChat - Decentralized Peer-to-Peer Text Messaging

Every node is a server accepting inbound peer connections and a client
opening outbound ones; there is no central broker.

License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .constants import APP_NAME, VERSION
from .errors import (
    ConfigError,
    ErrorCode,
    FailureKind,
    HandshakeTimeout,
    MalformedMessage,
    NetworkError,
    PeerChatError,
    SendFailure,
    ServerError,
)
from .node import ChatNode, PeerView, QuitReport
from .observer import NodeObserver
from .protocol import Identity, Message, MessageKind, Protocol
from .registry import PeerRecord, PeerRegistry, PeerState
from .sender import SendReceipt

__all__ = [
    "APP_NAME",
    "VERSION",
    "ChatNode",
    "ConfigError",
    "ErrorCode",
    "FailureKind",
    "HandshakeTimeout",
    "Identity",
    "MalformedMessage",
    "Message",
    "MessageKind",
    "NetworkError",
    "NodeObserver",
    "PeerChatError",
    "PeerRecord",
    "PeerRegistry",
    "PeerState",
    "PeerView",
    "Protocol",
    "QuitReport",
    "SendFailure",
    "SendReceipt",
    "ServerError",
    "__license__",
    "__version__",
]
