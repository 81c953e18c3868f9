"""
Access control for the revocation registry.

Two tiers: a single owner, and a set of publishers delegated by the owner.
The owner is always authorized to publish and un-revoke regardless of
publisher membership; only the owner manages publishers and ownership.

Mutating methods return the event they emitted; the registry collects and
releases events only once the enclosing call commits.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, Optional, Set

from revreg.errors import AlreadyInitialized, InvalidAddress, NotOwner
from revreg.events import OwnershipTransferred, PublisherAdded, PublisherRemoved
from revreg.keys import is_null_address, normalize_address


def _caller_identity(caller: Optional[str]) -> Optional[str]:
    """Normalized caller, or None for a caller that can never be authorized."""
    try:
        return normalize_address(caller, "caller")
    except InvalidAddress:
        return None


class AccessControl:
    """Owner + delegated publishers."""

    def __init__(self, owner: Optional[str] = None):
        self._owner: Optional[str] = None
        self._publishers: Set[str] = set()
        if owner is not None:
            self.initialize(owner)

    def initialize(self, owner_address: str) -> None:
        """Set the owner. Construction-time only; a second call fails."""
        if self._owner is not None:
            raise AlreadyInitialized("owner already set", {"owner": self._owner})
        self._owner = normalize_address(owner_address, "owner")

    @property
    def initialized(self) -> bool:
        return self._owner is not None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def publishers(self) -> FrozenSet[str]:
        return frozenset(self._publishers)

    def is_owner(self, caller: Optional[str]) -> bool:
        identity = _caller_identity(caller)
        return identity is not None and identity == self._owner

    def is_publisher(self, address: Optional[str]) -> bool:
        identity = _caller_identity(address)
        return identity is not None and identity in self._publishers

    def authorize(self, caller: Optional[str]) -> bool:
        """True iff caller is the owner or a current publisher."""
        identity = _caller_identity(caller)
        if identity is None:
            return False
        return identity == self._owner or identity in self._publishers

    def _require_owner(self, caller: Optional[str], operation: str) -> None:
        if not self.is_owner(caller):
            raise NotOwner(
                f"{operation}: caller is not the owner",
                {"caller": caller, "operation": operation},
            )

    def add_publisher(self, caller: str, address: str) -> PublisherAdded:
        self._require_owner(caller, "addPublisher")
        normalized = normalize_address(address)
        self._publishers.add(normalized)
        return PublisherAdded(address=normalized)

    def remove_publisher(self, caller: str, address: str) -> PublisherRemoved:
        """Remove a publisher; removing an absent address is not an error."""
        self._require_owner(caller, "removePublisher")
        if is_null_address(address):
            normalized = (address or "").strip().lower()
        else:
            normalized = normalize_address(address)
        self._publishers.discard(normalized)
        return PublisherRemoved(address=normalized)

    def transfer_ownership(self, caller: str, new_owner: str) -> OwnershipTransferred:
        self._require_owner(caller, "transferOwnership")
        normalized = normalize_address(new_owner, "new_owner")
        old_owner = self._owner
        self._owner = normalized
        return OwnershipTransferred(old_owner=old_owner or "", new_owner=normalized)

    @classmethod
    def restore(cls, owner: str, publishers: Iterable[str]) -> "AccessControl":
        """Rebuild access control state from a snapshot."""
        restored = cls(owner)
        restored._publishers = {normalize_address(p, "publisher") for p in publishers}
        return restored

    def clone(self) -> "AccessControl":
        """Independent copy used to stage a call before it commits."""
        copy = AccessControl()
        copy._owner = self._owner
        copy._publishers = set(self._publishers)
        return copy
