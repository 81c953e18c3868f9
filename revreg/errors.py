"""
Registry error taxonomy.

Every precondition violation raised by the registry is a RegistryError
subclass carrying a stable ``code`` so that callers (CLI, transport
adapters, subscribers) can branch on the kind without string matching.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base exception for all registry failures."""

    code = "RegistryError"

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.message = message or self.code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotOwner(RegistryError):
    """Caller is not the current owner for an owner-only operation."""

    code = "NotOwner"


class NotAuthorized(RegistryError):
    """Caller is neither the owner nor a delegated publisher."""

    code = "NotAuthorized"


class InvalidAddress(RegistryError):
    """A null or zero address was supplied where a real identity is required."""

    code = "InvalidAddress"


class AlreadyPublished(RegistryError):
    """Publish attempted against a record that is already REVOKED."""

    code = "AlreadyPublished"


class NotRevoked(RegistryError):
    """Un-revoke attempted against an absent or ACTIVE record."""

    code = "NotRevoked"


class LengthMismatch(RegistryError):
    """Batch input sequences have unequal lengths."""

    code = "LengthMismatch"


class AlreadyInitialized(RegistryError):
    """Access control owner was already set."""

    code = "AlreadyInitialized"


class InvalidInput(RegistryError):
    """Malformed holder id, epoch, pointer or batch."""

    code = "InvalidInput"

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(f"{field}: {message}", {"field": field})
