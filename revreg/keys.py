"""
Key derivation and identity helpers.

A holder's record lives under a single 256-bit key derived from the holder
identifier alone. The epoch is deliberately not part of the key, so a holder
has exactly one mutable slot that re-publication overwrites.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Optional

from revreg.errors import InvalidAddress, InvalidInput

KEY_ALGORITHMS = ("sha256", "sha3_256")
DEFAULT_KEY_ALGORITHM = "sha256"
KEY_SIZE_BYTES = 32

ZERO_ADDRESS = "0x" + "0" * 40

_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_KEY = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def derive_key(holder_id: str, algorithm: str = DEFAULT_KEY_ALGORITHM) -> bytes:
    """Derive the record key for a holder: Hash(UTF8Bytes(holder_id))."""
    if not isinstance(holder_id, str):
        raise InvalidInput("holder_id", f"expected str, got {type(holder_id).__name__}", holder_id)
    if algorithm not in KEY_ALGORITHMS:
        raise InvalidInput("algorithm", f"unsupported key algorithm {algorithm!r}", algorithm)
    return hashlib.new(algorithm, holder_id.encode("utf-8")).digest()


def key_hex(key: bytes) -> str:
    return "0x" + key.hex()


def parse_key_hex(value: str) -> bytes:
    """Parse a 0x-prefixed (or bare) 64-hex-char key."""
    if not isinstance(value, str) or not _HEX_KEY.match(value):
        raise InvalidInput("key", "expected 64 hex characters", value)
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def is_null_address(address: Optional[str]) -> bool:
    if address is None:
        return True
    if not isinstance(address, str):
        return False
    stripped = address.strip()
    return not stripped or stripped.lower() == ZERO_ADDRESS


def normalize_address(address: Optional[str], field: str = "address") -> str:
    """
    Normalize an address for comparison.

    Hex-style addresses compare case-insensitively; any other non-empty
    string is an opaque identity and is only trimmed.
    """
    if address is not None and not isinstance(address, str):
        raise InvalidAddress(f"{field}: expected str, got {type(address).__name__}", {"field": field})
    if is_null_address(address):
        raise InvalidAddress(f"{field}: null address", {"field": field})
    stripped = address.strip()
    if _HEX_ADDRESS.match(stripped):
        return stripped.lower()
    return stripped


def canonical_bytes(obj: Any) -> bytes:
    """Deterministic JSON bytes used for digests."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
