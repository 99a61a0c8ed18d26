"""
mistwrap.endpoints - Endpoint descriptors

An endpoint is a named, typed property or action this entity exposes to
remote peers. The backend calls the handlers; mistwrap only builds and
registers the descriptors.

Handler signatures follow the backend:
    read(args, peer, cb)           cb(err, value)
    write(value, peer, cb)         cb(err)
    invoke(args, peer, cb)         cb(err, result)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .errors import EndpointError

Handler = Callable[..., Any]

HANDLER_KEYS = ("read", "write", "invoke")


class EndpointType(Enum):
    """Value type of an endpoint."""
    INT = "int"
    FLOAT = "float"
    STRING = "string"

    @classmethod
    def from_string(cls, value: str) -> "EndpointType":
        """Convert string to EndpointType."""
        try:
            return cls(value)
        except ValueError:
            raise EndpointError(
                f"Invalid endpoint type: {value!r}. "
                f"Valid options: int, float, string"
            )


@dataclass
class Endpoint:
    """
    Endpoint descriptor.

    Usage:
        Endpoint(EndpointType.FLOAT, read=read_temperature)
    """
    type: EndpointType
    read: Optional[Handler] = None
    write: Optional[Handler] = None
    invoke: Optional[Handler] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = EndpointType.from_string(self.type)
        for key in HANDLER_KEYS:
            handler = getattr(self, key)
            if handler is not None and not callable(handler):
                raise EndpointError(f"Endpoint {key} handler must be callable")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Endpoint":
        if "type" not in data:
            raise EndpointError("Endpoint descriptor needs a type")
        unknown = set(data) - {"type", *HANDLER_KEYS}
        if unknown:
            raise EndpointError(f"Unknown endpoint descriptor keys: {sorted(unknown)}")
        return cls(
            type=data["type"],
            read=data.get("read"),
            write=data.get("write"),
            invoke=data.get("invoke"),
        )

    def to_descriptor(self) -> Dict[str, Any]:
        """Backend descriptor: the type plus only the handlers provided."""
        descriptor: Dict[str, Any] = {"type": self.type.value}
        for key in HANDLER_KEYS:
            handler = getattr(self, key)
            if handler is not None:
                descriptor[key] = handler
        return descriptor


def coerce_endpoint(descriptor: Union[Endpoint, Mapping[str, Any]]) -> Endpoint:
    """Accept an Endpoint or a plain descriptor dict."""
    if isinstance(descriptor, Endpoint):
        return descriptor
    if isinstance(descriptor, Mapping):
        return Endpoint.from_dict(descriptor)
    raise EndpointError(f"Unsupported endpoint descriptor: {type(descriptor).__name__}")


def name_endpoint(name: str) -> Endpoint:
    """Read-only string endpoint serving the entity name."""

    def read(args, peer, cb):
        cb(None, name)

    return Endpoint(EndpointType.STRING, read=read)
