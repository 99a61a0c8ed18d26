"""
mistwrap.identity - Identity workflow

Multi-step identity operations built on RequestBridge:

    get_own_identity(): find the identity we hold a private key for and
        export it as a shareable contact
    ensure_identity(name): create an identity, treating "already exists"
        as success
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import trio
import logging

from .bridge import RequestBridge
from .config import (
    CMD_IDENTITY_CREATE,
    CMD_IDENTITY_EXPORT,
    CMD_IDENTITY_LIST,
    IDENTITY_EXISTS_CODE,
    NOT_FOUND_GRACE,
)
from .errors import NotFoundError, TransportError

logger = logging.getLogger("mistwrap.identity")


@dataclass
class OwnIdentity:
    """Our own identity record and its exported contact."""
    identity: Dict[str, Any]
    contact: Any

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "contact": self.contact,
        }


def is_own_identity(record: Any) -> bool:
    """An identity is ours if the core holds its private key."""
    return isinstance(record, dict) and bool(record.get("privkey"))


class IdentityWorkflow:
    """
    Identity operations over the Wish identity channel.

    Attributes:
        bridge: RequestBridge used for every call
        not_found_grace: Seconds after identity.list starts before
            get_own_identity gives up with NotFoundError
    """

    def __init__(self, bridge: RequestBridge, not_found_grace: float = NOT_FOUND_GRACE):
        self.bridge = bridge
        self.not_found_grace = not_found_grace

    async def get_own_identity(self) -> OwnIdentity:
        """
        Get our own identity and its exported contact.

        The first identity carrying a private key wins; any further ones
        are ignored. Lookup of another identity by uid is not supported.

        Returns:
            OwnIdentity with a shallow copy of the identity record

        Raises:
            TransportError: identity.list or identity.export failed
            NotFoundError: No identity with a private key, raised once the
                grace window has elapsed since the list call started
        """
        deadline = trio.current_time() + self.not_found_grace

        try:
            identities = await self.bridge.wish_request(CMD_IDENTITY_LIST, [])
        except TransportError as e:
            logger.error(f"Failed to list identities: {e.payload!r}")
            raise

        match: Optional[Dict[str, Any]] = None
        for record in identities or []:
            if not is_own_identity(record):
                continue
            if match is None:
                match = record
            else:
                logger.warning(
                    f"Multiple identities with private keys, using {match.get('uid')!r} "
                    f"and ignoring {record.get('uid')!r}"
                )

        if match is None:
            await trio.sleep_until(deadline)
            raise NotFoundError("Not found")

        contact = await self.bridge.wish_request(CMD_IDENTITY_EXPORT, [match["uid"]])
        logger.debug(f"Exported own identity {match.get('alias', match['uid'])!r}")
        return OwnIdentity(identity=dict(match), contact=contact)

    async def ensure_identity(self, name: str) -> Any:
        """
        Create an identity for our entity, or accept the existing one.

        Args:
            name: Alias for the identity

        Returns:
            The created identity, or the core's "already exists" payload

        Raises:
            TransportError: Creation failed for any other reason
        """
        try:
            created = await self.bridge.wish_request(CMD_IDENTITY_CREATE, [name])
        except TransportError as e:
            # Code arrives as 304 or "304"
            if str(e.code) == str(IDENTITY_EXISTS_CODE):
                logger.debug(f"Identity {name!r} already exists")
                return e.payload
            raise

        logger.info(f"Created identity {name!r}")
        return created
