"""
mistwrap/errors.py

Exceptions raised by mistwrap.
"""

from typing import Any, Optional


class MistError(Exception):
    """Base exception for mistwrap errors."""
    pass


class TransportError(MistError):
    """
    A backend request reported failure.

    The payload is the second argument the backend passed to the request
    callback. It may be a dict carrying a ``code`` field or a bare string.
    """

    def __init__(self, payload: Any, command: Optional[str] = None):
        self.payload = payload
        self.command = command
        if command:
            super().__init__(f"{command} failed: {payload!r}")
        else:
            super().__init__(f"Request failed: {payload!r}")

    @property
    def code(self) -> Optional[Any]:
        """Status code from a structured payload, if any."""
        if isinstance(self.payload, dict):
            return self.payload.get("code")
        return getattr(self.payload, "code", None)


class ConstructionError(MistError):
    """The backend could not be instantiated."""
    pass


class NotFoundError(MistError):
    """No identity owned by this entity was found."""
    pass


class EndpointError(MistError, ValueError):
    """Invalid endpoint descriptor."""
    pass
