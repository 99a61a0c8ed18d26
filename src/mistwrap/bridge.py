"""
mistwrap.bridge - Callback to awaitable request bridge

Turns the backend's error-first callback requests into awaitable calls.
Two channels share the call shape but not the command namespace:

    IDENTITY: backend.wish.request(cmd, args, cb)   (Wish core)
    PEER:     backend.request(cmd, args, cb)        (Mist)

Callback contract:
    cb(err, data) - if err is truthy the request failed and ``data`` is the
    failure payload (not ``err``); otherwise ``data`` is the result.

There is no timeout, retry or cancellation. A request whose callback never
fires stays pending until the awaiting task is cancelled.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence
import trio
import logging

from .errors import TransportError

logger = logging.getLogger("mistwrap.bridge")


class Channel(Enum):
    """
    Backend command namespace.

    IDENTITY: identity and local discovery commands (Wish core)
    PEER: peer and control commands (Mist)
    """
    IDENTITY = "wish"
    PEER = "mist"


class PendingRequest:
    """
    One in-flight backend request.

    Settles exactly once. Later callbacks for the same request are
    reported by settle() returning False.
    """

    def __init__(self, command: str, args: Sequence[Any]):
        self.command = command
        self.args: List[Any] = list(args)
        self._event = trio.Event()
        self._failed = False
        self._data: Any = None

    @property
    def settled(self) -> bool:
        return self._event.is_set()

    def settle(self, err: Any, data: Any) -> bool:
        """Record the callback result. Must run on the trio thread."""
        if self._event.is_set():
            return False
        self._failed = bool(err)
        self._data = data
        self._event.set()
        return True

    async def wait(self) -> Any:
        """Wait for the callback; return data or raise TransportError."""
        await self._event.wait()
        if self._failed:
            raise TransportError(self._data, self.command)
        return self._data

    def __repr__(self) -> str:
        state = "settled" if self.settled else "pending"
        return f"PendingRequest({self.command!r}, {state})"


class RequestBridge:
    """
    Awaitable request/response over the backend's callback API.

    Callbacks may fire on the trio thread (settled immediately) or on any
    other thread (handed to the trio loop through its TrioToken).

    Example:
        bridge = RequestBridge(backend)
        identities = await bridge.send(Channel.IDENTITY, "identity.list")
        peers = await bridge.mist_request("listPeers", [])
    """

    def __init__(self, backend: Any, trio_token: Optional[trio.lowlevel.TrioToken] = None):
        """
        Initialize RequestBridge.

        Args:
            backend: Backend object exposing ``wish.request`` and ``request``
            trio_token: Token of the trio run callbacks are delivered to.
                Captured from the current run on first use if not given.
        """
        self._backend = backend
        self._trio_token = trio_token

        # Stats
        self._requests_sent = 0
        self._requests_failed = 0
        self._requests_pending = 0
        self._late_callbacks = 0

    def _transport(self, channel: Channel) -> Any:
        if channel is Channel.IDENTITY:
            return self._backend.wish
        return self._backend

    def _capture_token(self) -> None:
        if self._trio_token is not None:
            return
        try:
            self._trio_token = trio.lowlevel.current_trio_token()
        except RuntimeError:
            # Not in trio context; captured on the first awaited request
            pass

    def call_on_trio(self, fn: Callable[..., None], *args: Any) -> None:
        """Run fn on the trio thread, directly if we are already there."""
        self._capture_token()
        try:
            in_trio = trio.lowlevel.current_trio_token() is self._trio_token
        except RuntimeError:
            in_trio = False

        if in_trio:
            fn(*args)
            return

        if self._trio_token is None:
            logger.error("Backend callback arrived before any trio run was attached; dropped")
            return

        try:
            self._trio_token.run_sync_soon(fn, *args)
        except trio.RunFinishedError:
            logger.warning("Backend callback arrived after the trio run finished; dropped")

    def _settle(self, pending: PendingRequest, err: Any, data: Any) -> None:
        if not pending.settle(err, data):
            self._late_callbacks += 1
            logger.warning(f"Ignoring repeated callback for {pending.command}")
            return
        if err:
            self._requests_failed += 1
            logger.debug(f"<- {pending.command} failed: err={err!r} data={data!r}")
        else:
            logger.debug(f"<- {pending.command} ok")

    async def send(self, channel: Channel, command: str, args: Sequence[Any] = ()) -> Any:
        """
        Issue one backend request and wait for its callback.

        Args:
            channel: Which backend namespace handles the command
            command: Backend command name
            args: Ordered argument list, possibly empty

        Returns:
            The callback's ``data`` argument, unchanged

        Raises:
            TransportError: The callback's ``err`` was truthy. The error's
                payload is the callback's ``data`` argument.
        """
        self._capture_token()
        pending = PendingRequest(command, args)
        transport = self._transport(channel)

        def callback(err: Any, data: Any = None) -> None:
            self.call_on_trio(self._settle, pending, err, data)

        logger.debug(f"-> {channel.value} {command} {pending.args!r}")
        self._requests_sent += 1
        self._requests_pending += 1
        try:
            transport.request(command, pending.args, callback)
            return await pending.wait()
        finally:
            self._requests_pending -= 1

    async def wish_request(self, command: str, args: Sequence[Any] = ()) -> Any:
        """Send a command on the identity (Wish) channel."""
        return await self.send(Channel.IDENTITY, command, args)

    async def mist_request(self, command: str, args: Sequence[Any] = ()) -> Any:
        """Send a command on the peer (Mist) channel."""
        return await self.send(Channel.PEER, command, args)

    def subscribe(
        self,
        channel: Channel,
        command: str,
        args: Sequence[Any],
        callback: Callable[[Any, Any], None],
    ) -> Any:
        """
        Open a streaming request whose callback fires many times.

        Each (err, data) pair is forwarded to ``callback`` on the trio thread.

        Returns:
            Whatever the backend returns for the request (its request id)
        """
        self._capture_token()

        def forward(err: Any, data: Any = None) -> None:
            self.call_on_trio(callback, err, data)

        logger.debug(f"-> {channel.value} {command} (stream)")
        return self._transport(channel).request(command, list(args), forward)

    def get_stats(self) -> Dict[str, Any]:
        """Get bridge statistics."""
        return {
            "requests_sent": self._requests_sent,
            "requests_failed": self._requests_failed,
            "requests_pending": self._requests_pending,
            "late_callbacks": self._late_callbacks,
        }

    def __repr__(self) -> str:
        return f"RequestBridge(sent={self._requests_sent}, pending={self._requests_pending})"
