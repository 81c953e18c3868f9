"""
Input validation for holder identifiers and evidence pointers.

The core registry accepts any string holder id and any string pointer; the
checks here are an opt-in policy (see ``validation.*`` config) for issuers
that want malformed identifiers rejected before they reach the ledger.

Security Model:
    - All inputs are untrusted until validated
    - Validation never mutates registry state
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from revreg.errors import InvalidInput


HOLDER_PREFIX = "holder:"
HOLDER_ID_MIN_LENGTH = 3
HOLDER_ID_MAX_LENGTH = 256
POINTER_MIN_LENGTH = 10
POINTER_MAX_LENGTH = 100
IPFS_SCHEME = "ipfs://"

HOLDER_ID_PATTERN = re.compile(r"^(holder:)?[a-zA-Z0-9][a-zA-Z0-9@._\-:]+$")
DANGEROUS_CHARS = re.compile(r"[<>\"'`;\\|&$]")


@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[InvalidInput] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        if not self.is_valid:
            raise self.errors[0]

    @classmethod
    def success(cls, sanitized_value: Any = None) -> "ValidationResult":
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, field_name: str, message: str, value: Any = None) -> "ValidationResult":
        return cls(is_valid=False, errors=[InvalidInput(field_name, message, value)])


def validate_holder_id(value: Any) -> ValidationResult:
    """Check length, character set and shape of a holder identifier."""
    if not isinstance(value, str):
        return ValidationResult.failure("holder_id", f"expected str, got {type(value).__name__}", value)

    trimmed = value.strip()
    if not trimmed:
        return ValidationResult.failure("holder_id", "must not be empty", value)
    if len(trimmed) < HOLDER_ID_MIN_LENGTH:
        return ValidationResult.failure(
            "holder_id", f"must be at least {HOLDER_ID_MIN_LENGTH} characters", value
        )
    if len(trimmed) > HOLDER_ID_MAX_LENGTH:
        return ValidationResult.failure(
            "holder_id", f"must be at most {HOLDER_ID_MAX_LENGTH} characters", value
        )
    if DANGEROUS_CHARS.search(trimmed):
        return ValidationResult.failure("holder_id", "contains disallowed characters", value)
    if not HOLDER_ID_PATTERN.match(trimmed):
        return ValidationResult.failure(
            "holder_id",
            "must start with an alphanumeric character or 'holder:' followed by [A-Za-z0-9@._-:]",
            value,
        )
    return ValidationResult.success(trimmed)


def is_valid_holder_id(value: Any) -> bool:
    return validate_holder_id(value).is_valid


def normalize_holder_id(value: str) -> str:
    """Trim, lowercase and ensure the ``holder:`` prefix."""
    trimmed = value.strip().lower()
    if not trimmed.startswith(HOLDER_PREFIX):
        return HOLDER_PREFIX + trimmed
    return trimmed


def validate_evidence_pointer(value: Any) -> ValidationResult:
    """Check an evidence pointer (bare CID or ipfs:// URI)."""
    if not isinstance(value, str):
        return ValidationResult.failure(
            "evidence_pointer", f"expected str, got {type(value).__name__}", value
        )

    trimmed = value.strip()
    if not trimmed:
        return ValidationResult.failure("evidence_pointer", "must not be empty", value)

    cid = trimmed[len(IPFS_SCHEME):] if trimmed.startswith(IPFS_SCHEME) else trimmed
    if not POINTER_MIN_LENGTH <= len(cid) <= POINTER_MAX_LENGTH:
        return ValidationResult.failure(
            "evidence_pointer",
            f"invalid length {len(cid)}, expected {POINTER_MIN_LENGTH}-{POINTER_MAX_LENGTH}",
            value,
        )
    if DANGEROUS_CHARS.search(cid):
        return ValidationResult.failure("evidence_pointer", "contains disallowed characters", value)
    return ValidationResult.success(trimmed)


@dataclass(frozen=True)
class InputPolicy:
    """
    Validation policy applied by the store before any mutation.

    Type checks always apply; format checks only when the strict flags are set.
    """
    strict_holder_ids: bool = False
    strict_pointers: bool = False
    max_batch_size: Optional[int] = None

    def check_holder_id(self, holder_id: Any) -> None:
        if not isinstance(holder_id, str):
            raise InvalidInput("holder_id", f"expected str, got {type(holder_id).__name__}", holder_id)
        if self.strict_holder_ids:
            validate_holder_id(holder_id).raise_if_invalid()

    def check_pointer(self, pointer: Any) -> None:
        if not isinstance(pointer, str):
            raise InvalidInput("evidence_pointer", f"expected str, got {type(pointer).__name__}", pointer)
        if self.strict_pointers:
            validate_evidence_pointer(pointer).raise_if_invalid()

    def check_batch(self, items: Sequence[Any]) -> None:
        if self.max_batch_size is not None and len(items) > self.max_batch_size:
            raise InvalidInput(
                "batch",
                f"batch of {len(items)} exceeds maximum of {self.max_batch_size}",
                len(items),
            )
