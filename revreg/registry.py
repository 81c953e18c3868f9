"""
Revocation Registry Service

The single service instance that owns registry state. Callers reach the
state only through the operations below; caller identity is an explicit
argument to every mutating operation.

Execution model
───────────────

    Mutating calls are serialized by a lock and staged on a copy of the
    state. The copy replaces the live state only after the operation and
    (if configured) the state file write have both succeeded, so a failed
    call leaves owner, publishers and records exactly as they were and
    emits no events. Reads go to the latest committed state and never
    take the lock.

    caller ──► AccessControl.authorize ──► RevocationStore transition
                                                  │
                           commit: swap state, assign sequence numbers,
                           persist, then EventLog.extend + EventBus.publish

Usage
─────

    registry = RevocationRegistry(owner="0xA11CE...")
    registry.add_publisher("0xA11CE...", "0xB0B...")
    registry.publish("0xB0B...", "holder:alice@example.com", 20000, "ipfs://cid-1234")
    registry.get_revocation_info("holder:alice@example.com")
    # RevocationInfo(revocation_epoch_days=20000, evidence_pointer='ipfs://cid-1234',
    #                version=1, status=<RevocationStatus.REVOKED: 1>)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Union

from revreg.access import AccessControl
from revreg.config import RegistryConfig
from revreg.errors import RegistryError
from revreg.events import Event, EventBus, EventLog, Receipt
from revreg.keys import DEFAULT_KEY_ALGORITHM, key_hex, parse_key_hex
from revreg.observability import get_logger, timed_operation
from revreg.persistence import STATE_FORMAT, JsonStateBackend, PersistenceError, check_format
from revreg.store import Record, RevocationInfo, RevocationStatus, RevocationStore
from revreg.validation import InputPolicy


@dataclass(frozen=True)
class _State:
    access: AccessControl
    store: RevocationStore
    sequence: int


class RevocationRegistry:
    """Owner-administered revocation registry."""

    def __init__(
        self,
        owner: str,
        *,
        key_algorithm: str = DEFAULT_KEY_ALGORITHM,
        policy: Optional[InputPolicy] = None,
        backend: Optional[JsonStateBackend] = None,
        max_undrained_events: Optional[int] = None,
        bus: Optional[EventBus] = None,
    ):
        access = AccessControl(owner)
        self._state = _State(access, RevocationStore(access, key_algorithm, policy), 0)
        self._backend = backend
        self._lock = threading.RLock()
        self.events = EventLog(max_undrained_events)
        self.bus = bus or EventBus()
        self.log = get_logger("registry")

    @classmethod
    def from_config(
        cls,
        owner: str,
        config: RegistryConfig,
        backend: Optional[JsonStateBackend] = None,
    ) -> "RevocationRegistry":
        return cls(
            owner,
            key_algorithm=config.keys.algorithm.get(),
            policy=policy_from_config(config),
            backend=backend,
            max_undrained_events=config.events.max_undrained.get(),
        )

    # ────────────────────────────────────────────────────────────────────
    # Commit machinery
    # ────────────────────────────────────────────────────────────────────

    def _execute(
        self,
        operation: str,
        apply: Callable[[AccessControl, RevocationStore], Sequence[Event]],
    ) -> Receipt:
        with self._lock:
            current = self._state
            access = current.access.clone()
            store = current.store.clone(access)

            events = list(apply(access, store))
            sequence = current.sequence
            for event in events:
                sequence += 1
                event.sequence = sequence

            staged = _State(access, store, sequence)
            if self._backend is not None:
                self._backend.save(_encode(staged))
            self._state = staged
            self.log.debug(
                "committed",
                operation=operation,
                events=[e.event_type for e in events],
                sequence=sequence,
            )

            self.events.extend(tuple(events))
            for event in events:
                self.bus.publish(event)

        return Receipt(operation, tuple(events))

    # ────────────────────────────────────────────────────────────────────
    # Access control operations
    # ────────────────────────────────────────────────────────────────────

    @timed_operation("addPublisher")
    def add_publisher(self, caller: str, address: str) -> Receipt:
        return self._execute("addPublisher", lambda a, s: [a.add_publisher(caller, address)])

    @timed_operation("removePublisher")
    def remove_publisher(self, caller: str, address: str) -> Receipt:
        return self._execute("removePublisher", lambda a, s: [a.remove_publisher(caller, address)])

    @timed_operation("transferOwnership")
    def transfer_ownership(self, caller: str, new_owner: str) -> Receipt:
        return self._execute("transferOwnership", lambda a, s: [a.transfer_ownership(caller, new_owner)])

    @property
    def owner(self) -> str:
        return self._state.access.owner  # type: ignore[return-value]

    @property
    def publishers(self) -> FrozenSet[str]:
        return self._state.access.publishers

    def is_publisher(self, address: str) -> bool:
        return self._state.access.is_publisher(address)

    def authorize(self, caller: str) -> bool:
        return self._state.access.authorize(caller)

    # ────────────────────────────────────────────────────────────────────
    # Revocation operations
    # ────────────────────────────────────────────────────────────────────

    @timed_operation("publish")
    def publish(self, caller: str, holder_id: str, epoch_days: int, evidence_pointer: str) -> Receipt:
        return self._execute(
            "publish",
            lambda a, s: [s.publish(caller, holder_id, epoch_days, evidence_pointer)],
        )

    @timed_operation("publishBatch")
    def publish_batch(
        self,
        caller: str,
        holder_ids: Sequence[str],
        epoch_days: Sequence[int],
        evidence_pointers: Sequence[str],
    ) -> Receipt:
        return self._execute(
            "publishBatch",
            lambda a, s: s.publish_batch(caller, holder_ids, epoch_days, evidence_pointers),
        )

    @timed_operation("unrevoke")
    def unrevoke(self, caller: str, holder_id: str) -> Receipt:
        return self._execute("unrevoke", lambda a, s: [s.unrevoke(caller, holder_id)])

    # ────────────────────────────────────────────────────────────────────
    # Queries
    # ────────────────────────────────────────────────────────────────────

    @property
    def key_algorithm(self) -> str:
        return self._state.store.key_algorithm

    @property
    def sequence(self) -> int:
        """Sequence number of the last committed event."""
        return self._state.sequence

    def derive_key(self, holder_id: str) -> bytes:
        return self._state.store.derive_key(holder_id)

    def get_revocation_info(self, holder_id: str) -> RevocationInfo:
        return self._state.store.get_revocation_info(holder_id)

    def get_revocation_info_by_key(self, key: Union[bytes, str]) -> RevocationInfo:
        if isinstance(key, str):
            key = parse_key_hex(key)
        return self._state.store.get_revocation_info_by_key(key)

    def is_revoked(self, holder_id: str) -> bool:
        return self._state.store.is_revoked(holder_id)

    def batch_check_revocation(self, holder_ids: Sequence[str]) -> List[bool]:
        return self._state.store.batch_check_revocation(holder_ids)

    def __len__(self) -> int:
        return len(self._state.store)

    # ────────────────────────────────────────────────────────────────────
    # Snapshots
    # ────────────────────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Committed state as a JSON-compatible dict."""
        return _encode(self._state)

    @classmethod
    def from_snapshot(
        cls,
        data: Dict[str, Any],
        *,
        policy: Optional[InputPolicy] = None,
        backend: Optional[JsonStateBackend] = None,
        max_undrained_events: Optional[int] = None,
    ) -> "RevocationRegistry":
        check_format(data, "snapshot")
        try:
            registry = cls(
                data["owner"],
                key_algorithm=data.get("key_algorithm", DEFAULT_KEY_ALGORITHM),
                policy=policy,
                backend=backend,
                max_undrained_events=max_undrained_events,
            )
            access = AccessControl.restore(data["owner"], data.get("publishers", []))
            store = RevocationStore(access, registry.key_algorithm, policy)
            for hex_key, raw in (data.get("records") or {}).items():
                store.load_record(
                    parse_key_hex(hex_key),
                    Record(
                        status=RevocationStatus[raw["status"]],
                        epoch_days=int(raw["epoch_days"]),
                        evidence_pointer=str(raw["evidence_pointer"]),
                        version=int(raw["version"]),
                    ),
                )
            registry._state = _State(access, store, int(data.get("sequence", 0)))
        except (KeyError, TypeError, ValueError, RegistryError) as e:
            raise PersistenceError(f"malformed snapshot: {e}") from e
        return registry

    @classmethod
    def open(
        cls,
        backend: JsonStateBackend,
        *,
        policy: Optional[InputPolicy] = None,
        max_undrained_events: Optional[int] = None,
    ) -> "RevocationRegistry":
        """Load a registry from a state file; it must have been initialized."""
        data = backend.load()
        if data is None:
            raise PersistenceError(f"no registry state at {backend.path}; run 'revreg init' first")
        return cls.from_snapshot(
            data, policy=policy, backend=backend, max_undrained_events=max_undrained_events
        )

    def save(self) -> None:
        """Write the committed state to the backend (used after ``init``)."""
        if self._backend is None:
            raise PersistenceError("registry has no state backend")
        self._backend.save(self.snapshot())


def _encode(state: _State) -> Dict[str, Any]:
    return {
        "format": STATE_FORMAT,
        "key_algorithm": state.store.key_algorithm,
        "owner": state.access.owner,
        "publishers": sorted(state.access.publishers),
        "sequence": state.sequence,
        "records": {
            key_hex(key): {
                "status": record.status.name,
                "epoch_days": record.epoch_days,
                "evidence_pointer": record.evidence_pointer,
                "version": record.version,
            }
            for key, record in state.store.items()
        },
    }


def policy_from_config(config: RegistryConfig) -> InputPolicy:
    return InputPolicy(
        strict_holder_ids=config.validation.strict_holder_ids.get(),
        strict_pointers=config.validation.strict_pointers.get(),
        max_batch_size=config.validation.max_batch_size.get(),
    )
