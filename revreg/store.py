"""
Revocation Store

Holds one record per holder key and implements the publish / un-revoke /
query transitions.

State machine per key:

    (absent) ──publish──► REVOKED v1 ──unrevoke──► ACTIVE v2 ──publish──► REVOKED v3 ...
                            │  ▲                       │
                  publish ✗ │  └───────────────────────┘
             AlreadyPublished

    - version increases by exactly 1 on every successful transition
    - unrevoke keeps epoch_days / evidence_pointer of the prior revocation
    - records are never deleted

Absence is explicit (no entry in the mapping). The read contract still
reports absent records as ``(0, "", 0, ACTIVE)``.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from revreg.access import AccessControl
from revreg.errors import (
    AlreadyPublished,
    InvalidInput,
    LengthMismatch,
    NotAuthorized,
    NotRevoked,
)
from revreg.events import RevocationPublished, StatusChanged
from revreg.keys import DEFAULT_KEY_ALGORITHM, derive_key, key_hex
from revreg.validation import InputPolicy

UINT64_MAX = 2**64 - 1


class RevocationStatus(Enum):
    """Current validity status of a holder's credential."""
    ACTIVE = 0
    REVOKED = 1


@dataclass(frozen=True)
class Record:
    """A present record. Absent records are represented by ``None``."""
    status: RevocationStatus
    epoch_days: int
    evidence_pointer: str
    version: int

    @property
    def is_revoked(self) -> bool:
        return self.status is RevocationStatus.REVOKED


class RevocationInfo(NamedTuple):
    """Public read view of a record."""
    revocation_epoch_days: int
    evidence_pointer: str
    version: int
    status: RevocationStatus


ABSENT_INFO = RevocationInfo(0, "", 0, RevocationStatus.ACTIVE)


def _check_epoch_days(epoch_days: object) -> int:
    if isinstance(epoch_days, bool) or not isinstance(epoch_days, int):
        raise InvalidInput(
            "epoch_days", f"expected int, got {type(epoch_days).__name__}", epoch_days
        )
    if not 0 <= epoch_days <= UINT64_MAX:
        raise InvalidInput("epoch_days", f"out of range: {epoch_days}", epoch_days)
    return epoch_days


class RevocationStore:
    """
    Per-holder revocation records gated by an AccessControl.

    Every mutating method checks all preconditions before touching state,
    so a raised error always leaves the store unchanged. Mutating methods
    return the events they emitted.
    """

    def __init__(
        self,
        access: AccessControl,
        key_algorithm: str = DEFAULT_KEY_ALGORITHM,
        policy: Optional[InputPolicy] = None,
    ):
        # Fails fast on an unsupported algorithm.
        derive_key("", key_algorithm)
        self._access = access
        self._key_algorithm = key_algorithm
        self._policy = policy or InputPolicy()
        self._records: Dict[bytes, Record] = {}

    @property
    def key_algorithm(self) -> str:
        return self._key_algorithm

    def derive_key(self, holder_id: str) -> bytes:
        return derive_key(holder_id, self._key_algorithm)

    # ────────────────────────────────────────────────────────────────────
    # Transitions
    # ────────────────────────────────────────────────────────────────────

    def _require_authorized(self, caller: Optional[str], operation: str) -> None:
        if not self._access.authorize(caller):
            raise NotAuthorized(
                f"{operation}: caller is neither owner nor publisher",
                {"caller": caller, "operation": operation},
            )

    def _next_revoked(
        self,
        current: Optional[Record],
        key: bytes,
        epoch_days: int,
        evidence_pointer: str,
    ) -> Record:
        if current is None:
            return Record(RevocationStatus.REVOKED, epoch_days, evidence_pointer, 1)
        if current.is_revoked:
            raise AlreadyPublished(
                f"record {key_hex(key)} is already revoked",
                {"key": key_hex(key), "version": current.version},
            )
        return Record(RevocationStatus.REVOKED, epoch_days, evidence_pointer, current.version + 1)

    def publish(
        self,
        caller: str,
        holder_id: str,
        epoch_days: int,
        evidence_pointer: str,
    ) -> RevocationPublished:
        """Revoke a holder: create the record or re-revoke an ACTIVE one."""
        self._require_authorized(caller, "publish")
        self._policy.check_holder_id(holder_id)
        epoch_days = _check_epoch_days(epoch_days)
        self._policy.check_pointer(evidence_pointer)

        key = self.derive_key(holder_id)
        record = self._next_revoked(self._records.get(key), key, epoch_days, evidence_pointer)
        self._records[key] = record
        return RevocationPublished(
            key=key_hex(key), epoch_days=epoch_days, evidence_pointer=evidence_pointer
        )

    def publish_batch(
        self,
        caller: str,
        holder_ids: Sequence[str],
        epoch_days: Sequence[int],
        evidence_pointers: Sequence[str],
    ) -> List[RevocationPublished]:
        """
        Publish every index in order, all-or-nothing.

        Records are staged in an overlay and only written once every element
        has passed, so a holder repeated within one batch fails the batch
        with AlreadyPublished.
        """
        self._require_authorized(caller, "publishBatch")
        if not (len(holder_ids) == len(epoch_days) == len(evidence_pointers)):
            raise LengthMismatch(
                "batch inputs differ in length",
                {
                    "holder_ids": len(holder_ids),
                    "epoch_days": len(epoch_days),
                    "evidence_pointers": len(evidence_pointers),
                },
            )
        self._policy.check_batch(holder_ids)

        staged: Dict[bytes, Record] = {}
        events: List[RevocationPublished] = []
        for holder_id, days, pointer in zip(holder_ids, epoch_days, evidence_pointers):
            self._policy.check_holder_id(holder_id)
            days = _check_epoch_days(days)
            self._policy.check_pointer(pointer)

            key = self.derive_key(holder_id)
            current = staged[key] if key in staged else self._records.get(key)
            staged[key] = self._next_revoked(current, key, days, pointer)
            events.append(
                RevocationPublished(key=key_hex(key), epoch_days=days, evidence_pointer=pointer)
            )

        self._records.update(staged)
        return events

    def unrevoke(self, caller: str, holder_id: str) -> StatusChanged:
        """Return a REVOKED record to ACTIVE, keeping its epoch and pointer."""
        self._require_authorized(caller, "unrevoke")
        self._policy.check_holder_id(holder_id)

        key = self.derive_key(holder_id)
        current = self._records.get(key)
        if current is None or not current.is_revoked:
            raise NotRevoked(
                f"record {key_hex(key)} is not revoked",
                {"key": key_hex(key), "version": current.version if current else 0},
            )

        record = replace(current, status=RevocationStatus.ACTIVE, version=current.version + 1)
        self._records[key] = record
        return StatusChanged(
            key=key_hex(key),
            new_status=record.status.name,
            new_version=record.version,
        )

    # ────────────────────────────────────────────────────────────────────
    # Queries (no authorization)
    # ────────────────────────────────────────────────────────────────────

    def get_record_by_key(self, key: bytes) -> Optional[Record]:
        return self._records.get(key)

    def get_revocation_info_by_key(self, key: bytes) -> RevocationInfo:
        record = self._records.get(key)
        if record is None:
            return ABSENT_INFO
        return RevocationInfo(
            record.epoch_days, record.evidence_pointer, record.version, record.status
        )

    def get_revocation_info(self, holder_id: str) -> RevocationInfo:
        return self.get_revocation_info_by_key(self.derive_key(holder_id))

    def is_revoked(self, holder_id: str) -> bool:
        record = self._records.get(self.derive_key(holder_id))
        return record is not None and record.is_revoked

    def batch_check_revocation(self, holder_ids: Sequence[str]) -> List[bool]:
        return [self.is_revoked(holder_id) for holder_id in holder_ids]

    # ────────────────────────────────────────────────────────────────────
    # Snapshot support
    # ────────────────────────────────────────────────────────────────────

    def items(self) -> Iterator[Tuple[bytes, Record]]:
        return iter(sorted(self._records.items()))

    def load_record(self, key: bytes, record: Record) -> None:
        """Install a record while restoring a snapshot."""
        if record.version < 1:
            raise InvalidInput("version", f"stored record must have version >= 1, got {record.version}")
        self._records[key] = record

    def __len__(self) -> int:
        return len(self._records)

    def clone(self, access: AccessControl) -> "RevocationStore":
        """Independent copy bound to ``access``; records are immutable so a shallow copy suffices."""
        copy = RevocationStore(access, self._key_algorithm, self._policy)
        copy._records = dict(self._records)
        return copy
