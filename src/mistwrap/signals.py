"""
mistwrap.signals - Signal demultiplexing

The peer channel's "signals" request streams unsolicited notifications.
Each item is either a list ``[kind, *data]`` or a bare value. SignalBus
fans every item out to catch-all subscribers and to subscribers of the
item's kind. Bare objects have no kind and reach catch-alls only.
"""

from typing import Any, Callable, Dict, List, Tuple
import logging

logger = logging.getLogger("mistwrap.signals")

SignalCallback = Callable[..., None]


def split_signal(payload: Any) -> Tuple[Any, Tuple[Any, ...]]:
    """Split a stream item into (kind, data...)."""
    if isinstance(payload, (list, tuple)):
        if not payload:
            return None, ()
        return payload[0], tuple(payload[1:])
    return payload, ()


class SignalBus:
    """
    Tagged-variant event bus over the backend signal stream.

    Usage:
        bus = SignalBus()
        bus.subscribe(lambda kind, *data: print(kind, data))
        bus.on("friendRequest", on_friend_request)
        bus.dispatch(None, ["friendRequest", {...}])
    """

    def __init__(self):
        self._all: List[SignalCallback] = []
        self._by_kind: Dict[str, List[SignalCallback]] = {}

        # Stats
        self._signals_received = 0
        self._stream_errors = 0

    def subscribe(self, callback: SignalCallback) -> None:
        """Receive every signal as callback(kind, *data)."""
        self._all.append(callback)

    def on(self, kind: str, callback: SignalCallback) -> None:
        """Receive only signals of one kind as callback(*data)."""
        self._by_kind.setdefault(kind, []).append(callback)

    def unsubscribe(self, callback: SignalCallback) -> None:
        """Remove a callback from every subscription it was added to."""
        if callback in self._all:
            self._all.remove(callback)
        for callbacks in self._by_kind.values():
            if callback in callbacks:
                callbacks.remove(callback)

    def dispatch(self, err: Any, payload: Any = None) -> None:
        """
        Deliver one stream item.

        Args:
            err: Error flag from the backend callback; truthy items are
                logged and not delivered
            payload: The stream item
        """
        if err:
            self._stream_errors += 1
            logger.warning(f"Signal stream error: {payload!r}")
            return

        self._signals_received += 1
        kind, data = split_signal(payload)
        logger.debug(f"Signal {kind!r}")

        for callback in list(self._all):
            self._deliver(callback, kind, (kind,) + data)
        # Bare object payloads carry no discriminant; only catch-alls see them
        if not isinstance(kind, str):
            return
        for callback in list(self._by_kind.get(kind, ())):
            self._deliver(callback, kind, data)

    def _deliver(self, callback: SignalCallback, kind: Any, args: Tuple[Any, ...]) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.warning(f"Signal callback error for {kind!r}: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get signal statistics."""
        return {
            "signals_received": self._signals_received,
            "stream_errors": self._stream_errors,
            "subscribers": len(self._all),
            "kinds": sorted(k for k, v in self._by_kind.items() if v),
        }
