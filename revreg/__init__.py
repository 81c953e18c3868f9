"""
REVREG: Credential Revocation Registry

An owner-administered registry recording, per credential holder, whether
that holder's credential is currently revoked, from which epoch, and where
the supporting evidence is stored off-ledger. Delegated publishers may
publish and un-revoke; only the owner manages publishers and ownership.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          REVOCATION REGISTRY                             │
    │                                                                          │
    │  SERVICE                                                                 │
    │    registry.py     Serialized, all-or-nothing commits; receipts/events   │
    │    persistence.py  Atomic JSON state file, schema-checked                │
    │    cli.py          revreg command-line interface                         │
    │                                                                          │
    │  STATE                                                                   │
    │    access.py       Owner + publisher set, authorization                  │
    │    store.py        Keyed records, ACTIVE/REVOKED state machine           │
    │    keys.py         Holder id → 256-bit record key                        │
    │                                                                          │
    │  OFF-LEDGER                                                              │
    │    verifier.py     Validity at a check epoch, evidence fetchers          │
    │    audit.py        Hash-chained history fed from the event bus           │
    │    epoch.py        Day-count epochs, 1970-2100                           │
    │    validation.py   Holder id / evidence pointer rules                    │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Record Lifecycle
────────────────

    absent ──publish──► REVOKED v1 ──unrevoke──► ACTIVE v2 ──publish──► REVOKED v3 …

    A record is never deleted. Every successful transition bumps the
    version by exactly one, so a verifier can detect that a holder's
    status changed since it last looked.

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.3.0"

# Lazy imports keep ``revreg --version`` and config-only commands light


def __getattr__(name):
    """Lazy import registry modules on first access."""

    if name in ("RevocationRegistry", "policy_from_config"):
        from revreg import registry
        return getattr(registry, name)

    if name in ("RevocationStatus", "RevocationInfo", "Record", "ABSENT_INFO"):
        from revreg import store
        return getattr(store, name)

    if name in ("RegistryError", "NotOwner", "NotAuthorized", "InvalidAddress",
                "AlreadyPublished", "NotRevoked", "LengthMismatch",
                "AlreadyInitialized", "InvalidInput"):
        from revreg import errors
        return getattr(errors, name)

    if name in ("Event", "RevocationPublished", "StatusChanged", "PublisherAdded",
                "PublisherRemoved", "OwnershipTransferred", "Receipt",
                "EventLog", "EventBus"):
        from revreg import events
        return getattr(events, name)

    if name in ("derive_key", "key_hex", "parse_key_hex"):
        from revreg import keys
        return getattr(keys, name)

    if name in ("epoch_to_days", "days_to_epoch"):
        from revreg import epoch
        return getattr(epoch, name)

    if name in ("verify_revocation", "fetch_evidence", "VerificationResult",
                "LocalFileEvidenceFetcher"):
        from revreg import verifier
        return getattr(verifier, name)

    if name in ("AuditTrail",):
        from revreg import audit
        return getattr(audit, name)

    if name in ("JsonStateBackend", "PersistenceError"):
        from revreg import persistence
        return getattr(persistence, name)

    if name in ("ConfigManager", "get_config"):
        from revreg import config
        return getattr(config, name)

    raise AttributeError(f"module 'revreg' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Registry
    "RevocationRegistry",
    "policy_from_config",
    # Store
    "RevocationStatus",
    "RevocationInfo",
    "Record",
    "ABSENT_INFO",
    # Errors
    "RegistryError",
    "NotOwner",
    "NotAuthorized",
    "InvalidAddress",
    "AlreadyPublished",
    "NotRevoked",
    "LengthMismatch",
    "AlreadyInitialized",
    "InvalidInput",
    # Events
    "Event",
    "RevocationPublished",
    "StatusChanged",
    "PublisherAdded",
    "PublisherRemoved",
    "OwnershipTransferred",
    "Receipt",
    "EventLog",
    "EventBus",
    # Keys / epochs
    "derive_key",
    "key_hex",
    "parse_key_hex",
    "epoch_to_days",
    "days_to_epoch",
    # Verifier / audit
    "verify_revocation",
    "fetch_evidence",
    "VerificationResult",
    "LocalFileEvidenceFetcher",
    "AuditTrail",
    # Persistence / config
    "JsonStateBackend",
    "PersistenceError",
    "ConfigManager",
    "get_config",
]
