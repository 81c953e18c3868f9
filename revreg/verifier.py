"""
Verifier-side revocation checks.

A verifier asks one question: was this holder's credential valid at a given
check epoch? The registry answers with the record's status and revocation
epoch; if the answer is "revoked", the evidence pointer tells the verifier
where to fetch the off-chain material for final confirmation. Interpreting
that material is out of scope here: fetchers return raw bytes.
"""

from __future__ import annotations

import pathlib
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Union

from revreg.epoch import EpochLike, epoch_to_days
from revreg.registry import RevocationRegistry
from revreg.store import RevocationStatus


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking one holder at one epoch."""
    is_valid: bool
    status: RevocationStatus
    version: int
    revocation_epoch_days: int
    pointer: Optional[str]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "status": self.status.name,
            "version": self.version,
            "revocation_epoch_days": self.revocation_epoch_days,
            "pointer": self.pointer,
            "message": self.message,
        }


def verify_revocation(
    registry: RevocationRegistry,
    holder_id: str,
    check_epoch: EpochLike,
) -> VerificationResult:
    """
    Decide whether a holder's credential is valid at ``check_epoch``.

    - no record: valid
    - un-revoked (ACTIVE): valid
    - REVOKED, check epoch before the revocation epoch: valid
    - REVOKED, check epoch at or after it: invalid, pointer returned
    """
    check_days = epoch_to_days(check_epoch)
    info = registry.get_revocation_info(holder_id)

    if info.version == 0:
        return VerificationResult(
            True, info.status, 0, 0, None,
            "no revocation record found; credential is valid",
        )

    if info.status is RevocationStatus.ACTIVE:
        return VerificationResult(
            True, info.status, info.version, info.revocation_epoch_days, info.evidence_pointer,
            f"holder was un-revoked (version {info.version}); credential is valid",
        )

    if check_days < info.revocation_epoch_days:
        return VerificationResult(
            True, info.status, info.version, info.revocation_epoch_days, None,
            f"check epoch (day {check_days}) is before revocation epoch "
            f"(day {info.revocation_epoch_days}); credential is valid",
        )

    return VerificationResult(
        False, info.status, info.version, info.revocation_epoch_days, info.evidence_pointer,
        f"check epoch (day {check_days}) is at or after revocation epoch "
        f"(day {info.revocation_epoch_days}), status REVOKED (v{info.version}); "
        f"fetch evidence for final confirmation",
    )


# =============================================================================
# EVIDENCE FETCHERS
# =============================================================================

class EvidenceFetcher(Protocol):
    """Protocol for off-chain evidence stores addressed by pointer."""

    def fetch(self, pointer: str) -> Optional[bytes]:
        """Return the bytes behind ``pointer``, or None if not present."""
        ...


_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")


class LocalFileEvidenceFetcher:
    """
    Resolves pointers to files under a base directory.

    ``ipfs://`` is stripped and any character outside ``[A-Za-z0-9-_.]`` is
    replaced with ``_``; ``<name>`` is tried first, then ``<name>.bin``.
    """

    def __init__(self, base_directory: Union[str, pathlib.Path]):
        self.base_directory = pathlib.Path(base_directory)

    def _candidates(self, pointer: str):
        name = _UNSAFE_NAME_CHARS.sub("_", pointer.replace("ipfs://", ""))
        if name in ("", ".", ".."):
            return []
        return [self.base_directory / name, self.base_directory / f"{name}.bin"]

    def fetch(self, pointer: str) -> Optional[bytes]:
        if not pointer or not pointer.strip():
            return None
        for candidate in self._candidates(pointer.strip()):
            if candidate.is_file():
                return candidate.read_bytes()
        return None


def fetch_evidence(
    registry: RevocationRegistry,
    fetcher: EvidenceFetcher,
    holder_id: str,
    check_epoch: EpochLike,
) -> Optional[bytes]:
    """Evidence bytes if the holder is revoked at ``check_epoch``, else None."""
    result = verify_revocation(registry, holder_id, check_epoch)
    if result.is_valid or not result.pointer:
        return None
    return fetcher.fetch(result.pointer)
