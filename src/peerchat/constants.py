"""
PeerChat - Global Constants and Default Values

This module defines the constants used throughout the PeerChat node.
Protocol tokens, timeouts and configuration defaults are centralized here.
"""

# Version Information
VERSION = "1.0.0"
APP_NAME = "PeerChat"

# Network Constants
DEFAULT_PORT = 5000
DEFAULT_HOST = "0.0.0.0"
LOCALHOST = "127.0.0.1"

# Timeouts (seconds)
HANDSHAKE_TIMEOUT = 5.0
CONNECT_TIMEOUT = 5.0

# Stream Limits
READ_LIMIT = 64 * 1024  # Longest accepted line in bytes
LINE_TERMINATOR = "\n"
WIRE_ENCODING = "utf-8"

# Control Tokens (compared case-insensitively)
TOKEN_CONNECT = "connect"
TOKEN_CONNECTED = "connected"
TOKEN_EXIT = "exit"

# Default mandatory peers; fan-out is off unless enabled
DEFAULT_MANDATORY_PEERS = ["10.206.4.122:1255", "10.206.5.228:6555"]
DEFAULT_MANDATORY_ENABLED = False

# Configuration
CONFIG_FILENAME = "peerchat.toml"
ENV_PREFIX = "PEERCHAT"
DEFAULT_LOG_LEVEL = "WARNING"
