"""
mistwrap.adapter - Awaitable wrapper around the Wish and Mist APIs

MistAdapter owns one backend connection and exposes it as trio-awaitable
methods.

Backend contract (duck-typed):
    backend.wish.request(cmd, args, cb)     identity / discovery commands
    backend.request(cmd, args, cb)          peer / control commands
    backend.on("ready", handler)            readiness notification
    backend.node.addEndpoint(name, descriptor)
    backend.node.changed(name)

Usage:
    config = ConnectionConfig(name="Thermostat")
    adapter = await MistAdapter.open(config, backend_factory=Mist)
    await adapter.on_ready()

    await adapter.ensure_identity(config.name)
    me = await adapter.get_own_identity()
"""

from typing import Any, Callable, Mapping, Optional, Sequence, Union
import trio
import logging

from .bridge import Channel, RequestBridge
from .config import (
    CMD_CONTROL_INVOKE,
    CMD_FRIEND_REQUEST_ACCEPT,
    CMD_FRIEND_REQUEST_LIST,
    CMD_LIST_PEERS,
    CMD_LOCAL_FRIEND_REQUEST,
    CMD_LOCAL_LIST,
    CMD_SIGNALS,
    SIGNAL_FRIEND_REQUEST,
    ConnectionConfig,
)
from .endpoints import Endpoint, EndpointType, coerce_endpoint, name_endpoint
from .errors import ConstructionError
from .identity import IdentityWorkflow, OwnIdentity
from .signals import SignalBus, SignalCallback

logger = logging.getLogger("mistwrap.adapter")

BackendFactory = Callable[[dict], Any]

# Endpoints every entity serves
MARKER_ENDPOINT = "mist"
NAME_ENDPOINT = "mist.name"


class MistAdapter:
    """
    Adapter over one Wish/Mist backend connection.

    Attributes:
        config: Connection settings
        backend: The wrapped backend object
        bridge: RequestBridge over the backend's two channels
        identities: IdentityWorkflow for identity operations
        signals: SignalBus fed by the backend signal stream
    """

    def __init__(
        self,
        config: ConnectionConfig,
        backend: Any,
        trio_token: Optional[trio.lowlevel.TrioToken] = None,
    ):
        """
        Wrap an already constructed backend. Prefer MistAdapter.open().

        Args:
            config: Connection settings
            backend: Backend object
            trio_token: Token of the trio run backend callbacks go to
        """
        self.config = config
        self.backend = backend
        self.bridge = RequestBridge(backend, trio_token=trio_token)
        self.identities = IdentityWorkflow(self.bridge, not_found_grace=config.not_found_grace)
        self.signals = SignalBus()

        self._ready = trio.Event()
        self._ready_signals = 0
        self._signal_request_id: Any = None

        self.backend.on("ready", self._on_backend_ready)

        self.add_endpoint(MARKER_ENDPOINT, Endpoint(EndpointType.STRING))
        self.add_endpoint(NAME_ENDPOINT, name_endpoint(config.name))

    @classmethod
    async def open(cls, config: ConnectionConfig, backend_factory: BackendFactory) -> "MistAdapter":
        """
        Construct the backend and wrap it.

        Args:
            config: Connection settings
            backend_factory: Called with config.to_backend_options()

        Returns:
            MistAdapter bound to the current trio run

        Raises:
            ConstructionError: The backend could not be constructed
        """
        logger.info(f"Opening connection to Wish core at {config.address} as {config.name!r}")
        trio_token = trio.lowlevel.current_trio_token()
        try:
            backend = backend_factory(config.to_backend_options())
            # Wrapping registers the ready handler and built-in endpoints,
            # which fails on a backend missing on() or node
            return cls(config, backend, trio_token=trio_token)
        except Exception as e:
            logger.error(f"Failed to construct backend for {config.address}: {e}")
            raise ConstructionError(
                f"Unable to connect to Wish core at {config.core_ip}:{config.core_port}: {e}"
            ) from e

    # ---- lifecycle ----

    @property
    def ready(self) -> bool:
        """Whether the backend has signalled readiness."""
        return self._ready.is_set()

    def _on_backend_ready(self, *args: Any) -> None:
        self.bridge.call_on_trio(self._mark_ready)

    def _mark_ready(self) -> None:
        self._ready_signals += 1
        if self._ready.is_set():
            logger.debug(f"Ignoring repeated ready signal ({self._ready_signals})")
            return
        logger.info(f"Backend ready for {self.config.name!r}")
        self._ready.set()

    async def on_ready(self) -> None:
        """Wait until the backend is ready. Returns at once if it already is."""
        await self._ready.wait()

    # ---- raw requests ----

    async def wish_request(self, command: str, args: Sequence[Any] = ()) -> Any:
        """Send a command to the Wish core."""
        return await self.bridge.send(Channel.IDENTITY, command, args)

    async def mist_request(self, command: str, args: Sequence[Any] = ()) -> Any:
        """Send a command to Mist."""
        return await self.bridge.send(Channel.PEER, command, args)

    # ---- identity ----

    async def get_own_identity(self) -> OwnIdentity:
        """Our identity and its exported contact. See IdentityWorkflow."""
        return await self.identities.get_own_identity()

    async def ensure_identity(self, name: str) -> Any:
        """Create our identity unless it already exists."""
        return await self.identities.ensure_identity(name)

    # ---- local discovery & friend requests ----

    async def local_list(self) -> Any:
        """Entities found by Wish local discovery."""
        return await self.wish_request(CMD_LOCAL_LIST, [])

    async def local_friend_request(self, local_uid: Any, remote_uid: Any, rhid: Any) -> Any:
        """
        Send a friend request to a locally discovered entity.

        Args:
            local_uid: Our identity uid
            remote_uid: Remote identity uid
            rhid: Remote host id
        """
        return await self.wish_request(CMD_LOCAL_FRIEND_REQUEST, [local_uid, remote_uid, rhid])

    async def list_friend_requests(self) -> Any:
        """Pending incoming friend requests."""
        return await self.wish_request(CMD_FRIEND_REQUEST_LIST, [])

    async def accept_friend(self, local_uid: Any, remote_uid: Any) -> Any:
        """Accept a pending friend request."""
        return await self.wish_request(CMD_FRIEND_REQUEST_ACCEPT, [local_uid, remote_uid])

    # ---- peers ----

    async def list_friends(self) -> Any:
        """All known peers."""
        return await self.mist_request(CMD_LIST_PEERS, [])

    async def invoke(self, friend: Any, action: str) -> Any:
        """
        Invoke an action endpoint on a peer.

        Args:
            friend: Peer object as returned by list_friends()
            action: Endpoint name
        """
        return await self.mist_request(CMD_CONTROL_INVOKE, [friend, action])

    # ---- signals ----

    def _ensure_signal_stream(self) -> None:
        if self._signal_request_id is not None:
            return
        self._signal_request_id = self.bridge.subscribe(
            Channel.PEER, CMD_SIGNALS, [], self.signals.dispatch
        )
        # Some backends return no request id; mark the stream open anyway
        if self._signal_request_id is None:
            self._signal_request_id = True
        logger.debug("Signal stream opened")

    def on_signal(self, callback: SignalCallback) -> None:
        """Call callback(signal, *data) for every backend signal."""
        self.signals.subscribe(callback)
        self._ensure_signal_stream()

    def on_friend_request(self, callback: SignalCallback) -> None:
        """Call callback(*data) whenever a friend request arrives."""
        self.signals.on(SIGNAL_FRIEND_REQUEST, callback)
        self._ensure_signal_stream()

    def off_signal(self, callback: SignalCallback) -> None:
        """Stop delivering signals to a callback added with on_signal or on_friend_request."""
        self.signals.unsubscribe(callback)

    # ---- endpoints ----

    def add_endpoint(self, name: str, descriptor: Union[Endpoint, Mapping[str, Any]]) -> None:
        """
        Expose an endpoint to peers.

        Args:
            name: Endpoint name
            descriptor: Endpoint, or a dict like
                {"type": "int"|"float"|"string", "read": f, "write": f, "invoke": f}
        """
        endpoint = coerce_endpoint(descriptor)
        self.backend.node.addEndpoint(name, endpoint.to_descriptor())
        logger.debug(f"Added endpoint {name!r} ({endpoint.type.value})")

    def changed(self, name: str) -> None:
        """Tell observers that an endpoint value changed."""
        self.backend.node.changed(name)

    def get_stats(self) -> dict:
        """Get adapter statistics."""
        return {
            "name": self.config.name,
            "core": self.config.address,
            "ready": self.ready,
            "ready_signals": self._ready_signals,
            "bridge": self.bridge.get_stats(),
            "signals": self.signals.get_stats(),
        }

    def __repr__(self) -> str:
        status = "ready" if self.ready else "starting"
        return f"MistAdapter({self.config.name!r}, {self.config.address}, {status})"
