"""
mistwrap - Awaitable wrapper for the Wish and Mist peer-to-peer APIs

Exposes the callback-based Wish core (identities, local discovery, friend
requests) and Mist (peers, control, signals, endpoints) APIs as trio
awaitables. Identity cryptography, discovery and routing stay in the
wrapped backend.

Usage:
    import trio
    from mist import Mist
    from mistwrap import MistAdapter, ConnectionConfig

    async def main():
        config = ConnectionConfig(name="Thermostat")
        adapter = await MistAdapter.open(config, backend_factory=Mist)
        await adapter.on_ready()

        await adapter.ensure_identity(config.name)
        me = await adapter.get_own_identity()

        adapter.on_friend_request(lambda *data: print("friend request", data))
        for entity in await adapter.local_list():
            print(entity)

    trio.run(main)

Endpoint Usage:
    from mistwrap import Endpoint, EndpointType

    adapter.add_endpoint("temperature", Endpoint(EndpointType.FLOAT, read=read_temp))
    adapter.changed("temperature")
"""

from .adapter import MistAdapter
from .bridge import Channel, PendingRequest, RequestBridge
from .identity import IdentityWorkflow, OwnIdentity
from .signals import SignalBus
from .endpoints import Endpoint, EndpointType
from .config import (
    ConnectionConfig,
    DEFAULT_CORE_IP,
    DEFAULT_CORE_PORT,
    NOT_FOUND_GRACE,
    IDENTITY_EXISTS_CODE,
)
from .errors import (
    MistError,
    TransportError,
    ConstructionError,
    NotFoundError,
    EndpointError,
)

__version__ = "1.0.0"
__all__ = [
    # Core
    "MistAdapter",
    "ConnectionConfig",
    # Request bridge
    "RequestBridge",
    "PendingRequest",
    "Channel",
    # Identity
    "IdentityWorkflow",
    "OwnIdentity",
    # Signals & endpoints
    "SignalBus",
    "Endpoint",
    "EndpointType",
    # Config
    "DEFAULT_CORE_IP",
    "DEFAULT_CORE_PORT",
    "NOT_FOUND_GRACE",
    "IDENTITY_EXISTS_CODE",
    # Errors
    "MistError",
    "TransportError",
    "ConstructionError",
    "NotFoundError",
    "EndpointError",
]
