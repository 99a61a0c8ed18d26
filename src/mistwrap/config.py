"""
mistwrap/config.py

Configuration constants and connection settings for mistwrap.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import os
import logging

logger = logging.getLogger("mistwrap.config")


# Default Wish core location (local core, application port)
DEFAULT_CORE_IP = "127.0.0.1"
DEFAULT_CORE_PORT = "9095"

# Seconds to wait after identity.list before reporting "Not found"
NOT_FOUND_GRACE = 2.0

# Status code the core returns when identity.create hits an existing identity
IDENTITY_EXISTS_CODE = 304

# Identity / discovery channel commands (Wish core)
CMD_IDENTITY_LIST = "identity.list"
CMD_IDENTITY_EXPORT = "identity.export"
CMD_IDENTITY_CREATE = "identity.create"
CMD_LOCAL_LIST = "wld.list"
CMD_LOCAL_FRIEND_REQUEST = "wld.friendRequest"
CMD_FRIEND_REQUEST_LIST = "identity.friendRequestList"
CMD_FRIEND_REQUEST_ACCEPT = "identity.friendRequestAccept"

# Peer / control channel commands (Mist)
CMD_LIST_PEERS = "listPeers"
CMD_CONTROL_INVOKE = "mist.control.invoke"
CMD_SIGNALS = "signals"

# Signal discriminants
SIGNAL_FRIEND_REQUEST = "friendRequest"

# Environment variables read by ConnectionConfig.from_env()
ENV_NAME = "MIST_NAME"
ENV_CORE_IP = "MIST_CORE_IP"
ENV_CORE_PORT = "MIST_CORE_PORT"
ENV_NOT_FOUND_GRACE = "MIST_NOT_FOUND_GRACE"


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Connection settings for one adapter instance.

    Usage:
        config = ConnectionConfig(name="Thermostat")
        config = ConnectionConfig.from_env()
    """

    # Name of the calling entity (served as the "mist.name" endpoint)
    name: str

    # Wish core address
    core_ip: str = DEFAULT_CORE_IP
    core_port: str = DEFAULT_CORE_PORT

    # Grace window for get_own_identity's not-found path
    not_found_grace: float = NOT_FOUND_GRACE

    def __post_init__(self):
        if not self.name:
            raise ValueError("name cannot be empty")
        if self.not_found_grace < 0:
            raise ValueError("not_found_grace cannot be negative")
        # The core takes the port as a string
        object.__setattr__(self, "core_port", str(self.core_port))

    @classmethod
    def from_env(
        cls,
        name: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "ConnectionConfig":
        """
        Build configuration from environment variables.

        Args:
            name: Entity name, overrides MIST_NAME when given
            environ: Mapping to read instead of os.environ

        Returns:
            ConnectionConfig instance
        """
        env = os.environ if environ is None else environ

        grace = NOT_FOUND_GRACE
        raw_grace = env.get(ENV_NOT_FOUND_GRACE)
        if raw_grace:
            try:
                grace = float(raw_grace)
            except ValueError:
                raise ValueError(
                    f"Invalid {ENV_NOT_FOUND_GRACE}: {raw_grace!r}. Expected seconds as a number"
                )

        config = cls(
            name=name or env.get(ENV_NAME, ""),
            core_ip=env.get(ENV_CORE_IP, DEFAULT_CORE_IP),
            core_port=env.get(ENV_CORE_PORT, DEFAULT_CORE_PORT),
            not_found_grace=grace,
        )
        logger.debug(f"Loaded config from environment: {config.address}")
        return config

    @property
    def address(self) -> str:
        """Core address as host:port."""
        return f"{self.core_ip}:{self.core_port}"

    def to_backend_options(self) -> Dict[str, str]:
        """Options dict handed to the backend constructor."""
        return {
            "name": self.name,
            "coreIp": self.core_ip,
            "corePort": self.core_port,
        }
