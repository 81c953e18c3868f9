"""
Off-ledger audit trail.

The registry keeps only the current record and its version counter. A
subscriber that needs the full history of status changes attaches an
AuditTrail to the registry's event bus; every committed event is appended
to a hash chain, so later tampering with any entry is detectable.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from revreg.events import Event, EventBus
from revreg.keys import canonical_bytes, sha256_hex

GENESIS_DIGEST = "0" * 64


@dataclass
class AuditEntry:
    """One committed event in the chain."""
    sequence: int
    event_type: str
    payload: Dict[str, Any]
    timestamp: str
    previous_digest: str
    digest: str = ""

    def __post_init__(self):
        if not self.digest:
            self.digest = self.compute_digest()

    def compute_digest(self) -> str:
        content = {
            "sequence": self.sequence,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "previous_digest": self.previous_digest,
        }
        return sha256_hex(canonical_bytes(content))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "previous_digest": self.previous_digest,
            "digest": self.digest,
        }


class AuditTrail:
    """
    Tamper-evident, hash-chained history of registry events.

    Each entry's digest covers the previous entry's digest, so rewriting
    any entry breaks every link after it.
    """

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def attach(self, bus: EventBus) -> "AuditTrail":
        bus.subscribe(Event)(self.record)
        return self

    def record(self, event: Event) -> AuditEntry:
        with self._lock:
            previous = self._entries[-1].digest if self._entries else GENESIS_DIGEST
            entry = AuditEntry(
                sequence=event.sequence,
                event_type=event.event_type,
                payload=event.payload(),
                timestamp=event.event_timestamp,
                previous_digest=previous,
            )
            self._entries.append(entry)
            return entry

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the chain integrity.

        Returns (valid, first_invalid_index).
        """
        with self._lock:
            previous = GENESIS_DIGEST
            for i, entry in enumerate(self._entries):
                if entry.previous_digest != previous or entry.compute_digest() != entry.digest:
                    return (False, i)
                previous = entry.digest
            return (True, None)

    def history(self, key: str) -> List[AuditEntry]:
        """All entries about one record key (0x-hex), oldest first."""
        with self._lock:
            return [e for e in self._entries if e.payload.get("key") == key]

    @property
    def head(self) -> str:
        with self._lock:
            return self._entries[-1].digest if self._entries else GENESIS_DIGEST

    def entries(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
