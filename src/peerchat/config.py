"""
PeerChat - Configuration Management

This module handles loading, merging, and managing configuration from
TOML files and environment variables. The node's identity, the
mandatory-peer list and the fan-out toggle are read once at start-up and
stay fixed for the life of the process.
"""

import copy
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Python 3.11+ has tomllib built-in, older versions need tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .constants import (
    CONFIG_FILENAME,
    CONNECT_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MANDATORY_ENABLED,
    DEFAULT_MANDATORY_PEERS,
    DEFAULT_PORT,
    ENV_PREFIX,
    HANDSHAKE_TIMEOUT,
    LOCALHOST,
    READ_LIMIT,
)
from .errors import ConfigError, ErrorCode, PeerChatError
from .protocol import Identity
from .utils import format_address, parse_address, validate_ip, validate_port

# Default configuration dictionary
DEFAULT_CONFIG: Dict[str, Any] = {
    "identity": {
        "name": "",
        "ip": LOCALHOST,
        "port": DEFAULT_PORT,
    },
    "network": {
        "host": DEFAULT_HOST,
        "handshake_timeout": HANDSHAKE_TIMEOUT,
        "connect_timeout": CONNECT_TIMEOUT,
        "read_limit": READ_LIMIT,
    },
    "mandatory": {
        "enabled": DEFAULT_MANDATORY_ENABLED,
        "peers": list(DEFAULT_MANDATORY_PEERS),
    },
    "logging": {
        "level": DEFAULT_LOG_LEVEL,
        "file": "",
    },
}


class Config:
    """Configuration manager for PeerChat.

    Loads configuration from a TOML file, merges it with the defaults and
    applies environment variable overrides.

    Attributes:
        config_path: Path to the configuration file (may not exist)
        data: Configuration dictionary
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file (optional)
                If not provided, ``peerchat.toml`` in the working directory
        """
        self.config_path = Path(config_path) if config_path else Path(CONFIG_FILENAME)
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file and merge with defaults.

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    file_config = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(
                    ErrorCode.E704_CONFIG_PARSE_ERROR,
                    f"Failed to parse configuration file: {e}",
                    {"path": str(self.config_path), "error": str(e)},
                ) from e
            config = self._merge_config(config, file_config)

        return self._apply_env_overrides(config)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge override config into base config."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: PEERCHAT_SECTION_KEY
        For example: PEERCHAT_IDENTITY_PORT=5001 or
        PEERCHAT_MANDATORY_PEERS=10.0.0.1:5000,10.0.0.2:5000

        Raises:
            ConfigError: If a value cannot be converted to the expected type
        """
        for section, settings in config.items():
            if not isinstance(settings, dict):
                continue

            for key, current in settings.items():
                env_var = f"{ENV_PREFIX}_{section.upper()}_{key.upper()}"
                env_value = os.environ.get(env_var)
                if env_value is None:
                    continue

                try:
                    if isinstance(current, bool):
                        settings[key] = env_value.lower() in ("true", "1", "yes")
                    elif isinstance(current, int):
                        settings[key] = int(env_value)
                    elif isinstance(current, float):
                        settings[key] = float(env_value)
                    elif isinstance(current, list):
                        settings[key] = [item.strip() for item in env_value.split(",") if item.strip()]
                    else:
                        settings[key] = env_value
                except ValueError as e:
                    raise ConfigError(
                        ErrorCode.E703_INVALID_CONFIG,
                        f"Invalid value for {env_var}: {env_value!r}",
                        {"variable": env_var, "error": str(e)},
                    ) from e

        return config

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.data.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a configuration value (start-up only; the node copies what it needs)."""
        self.data.setdefault(section, {})[key] = value

    def identity(self) -> Identity:
        """Build this node's identity.

        Raises:
            ConfigError: If the name, ip or port is missing or invalid
        """
        name = str(self.get("identity", "name", "")).strip()
        ip = str(self.get("identity", "ip", "")).strip()
        port = self.get("identity", "port")

        if not name or len(name.split()) != 1:
            raise ConfigError(
                ErrorCode.E703_INVALID_CONFIG,
                "Name must be a single word",
                {"name": name},
            )
        if not validate_ip(ip):
            raise ConfigError(ErrorCode.E703_INVALID_CONFIG, f"Invalid IP address: {ip!r}")
        if not isinstance(port, int) or not validate_port(port):
            raise ConfigError(ErrorCode.E703_INVALID_CONFIG, f"Invalid port: {port!r}")

        return Identity(name, ip, port)

    def mandatory_peers(self) -> List[str]:
        """Return the mandatory peers as normalized ``"ip:port"`` keys.

        Entries may be ``"ip:port"`` strings or ``{ip = ..., port = ...}``
        tables. Duplicates are dropped, order is kept.

        Raises:
            ConfigError: If an entry is not a valid address
        """
        peers: List[str] = []
        for entry in self.get("mandatory", "peers", []) or []:
            try:
                if isinstance(entry, dict):
                    ip, port = str(entry["ip"]), int(entry["port"])
                else:
                    ip, port = parse_address(str(entry))
            except (KeyError, TypeError, ValueError, PeerChatError) as e:
                raise ConfigError(
                    ErrorCode.E703_INVALID_CONFIG,
                    f"Invalid mandatory peer entry: {entry!r}",
                    {"entry": repr(entry), "error": str(e)},
                ) from e

            address = format_address(ip, port)
            if address not in peers:
                peers.append(address)
        return peers

    def to_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary."""
        return copy.deepcopy(self.data)
