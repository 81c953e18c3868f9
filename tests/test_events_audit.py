"""
Tests for registry events, the drainable event log, the event bus and the
hash-chained audit trail.
"""

import json

import pytest

from revreg.audit import GENESIS_DIGEST, AuditTrail
from revreg.errors import NotAuthorized
from revreg.events import (
    Event,
    EventBus,
    EventLog,
    OwnershipTransferred,
    PublisherAdded,
    Receipt,
    RevocationPublished,
    StatusChanged,
)
from revreg.keys import derive_key, key_hex
from revreg.registry import RevocationRegistry


ALICE = "holder:alice@example.com"
BOB = "holder:bob@example.com"


# =============================================================================
# EVENTS
# =============================================================================

class TestEvents:

    def test_event_type_and_payload(self):
        event = RevocationPublished(key="0xabc", epoch_days=20000, evidence_pointer="ipfs://cid")
        assert event.event_type == "RevocationPublished"
        assert event.payload() == {"key": "0xabc", "epoch_days": 20000, "evidence_pointer": "ipfs://cid"}

    def test_to_dict_from_dict(self):
        event = StatusChanged(key="0xabc", new_status="ACTIVE", new_version=2, sequence=7)
        restored = Event.from_dict(event.to_dict())

        assert isinstance(restored, StatusChanged)
        assert restored == event

    def test_to_json_is_parseable(self):
        event = PublisherAdded(address="0x" + "b0" * 20)
        data = json.loads(event.to_json())
        assert data["event_type"] == "PublisherAdded"
        assert data["address"] == "0x" + "b0" * 20

    def test_digest_ignores_envelope(self):
        a = OwnershipTransferred(old_owner="a", new_owner="b")
        b = OwnershipTransferred(old_owner="a", new_owner="b")
        c = OwnershipTransferred(old_owner="a", new_owner="c")

        assert a.event_id != b.event_id
        assert a.digest() == b.digest()
        assert a.digest() != c.digest()

    def test_receipt_to_dict(self):
        receipt = Receipt("addPublisher", (PublisherAdded(address="x"),))
        data = receipt.to_dict()
        assert data["operation"] == "addPublisher"
        assert data["events"][0]["event_type"] == "PublisherAdded"


# =============================================================================
# EVENT LOG
# =============================================================================

class TestEventLog:

    def test_drain_returns_and_clears(self):
        log = EventLog()
        log.extend((PublisherAdded(address="a"), PublisherAdded(address="b")))

        assert len(log) == 2
        assert [e.address for e in log.peek()] == ["a", "b"]
        assert [e.address for e in log.drain()] == ["a", "b"]
        assert log.drain() == []

    def test_bounded_log_drops_oldest(self, caplog):
        log = EventLog(max_events=2)
        log.extend(tuple(PublisherAdded(address=str(i)) for i in range(5)))

        assert [e.address for e in log.drain()] == ["3", "4"]
        assert "dropped 3" in caplog.text

    def test_registry_log_is_bounded(self, owner):
        registry = RevocationRegistry(owner, max_undrained_events=3)
        for i in range(5):
            registry.publish(owner, f"holder:user-{i}", 20000, "ipfs://cid")

        assert [e.sequence for e in registry.events.drain()] == [3, 4, 5]


# =============================================================================
# EVENT BUS
# =============================================================================

class TestEventBus:

    def test_subscribe_by_type(self):
        bus = EventBus()
        published, everything = [], []

        bus.subscribe(RevocationPublished)(published.append)
        bus.subscribe()(everything.append)

        bus.publish(RevocationPublished(key="k"))
        bus.publish(PublisherAdded(address="a"))

        assert len(published) == 1
        assert len(everything) == 2

    def test_priority_order(self):
        bus = EventBus()
        order = []

        @bus.subscribe(priority=1)
        def low(event):
            order.append("low")

        @bus.subscribe(priority=10)
        def high(event):
            order.append("high")

        bus.publish(PublisherAdded(address="a"))
        assert order == ["high", "low"]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        bus.subscribe()(seen.append)

        assert bus.unsubscribe(seen.append) is True
        bus.publish(PublisherAdded(address="a"))
        assert seen == []
        assert bus.unsubscribe(seen.append) is False

    def test_handler_errors_reported(self):
        errors = []
        bus = EventBus(on_error=errors.append)
        after = []

        @bus.subscribe(priority=5)
        def broken(event):
            raise ValueError("boom")

        bus.subscribe()(after.append)
        bus.publish(PublisherAdded(address="a"))

        assert len(errors) == 1
        assert isinstance(errors[0].cause, ValueError)
        assert len(after) == 1
        assert bus.metrics == {"published": 1, "errors": 1, "handlers": 2}


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class TestAuditTrail:

    @pytest.fixture
    def audited(self, registry, owner):
        trail = AuditTrail().attach(registry.bus)
        registry.publish(owner, ALICE, 20000, "ipfs://cid-a")
        registry.unrevoke(owner, ALICE)
        registry.publish(owner, ALICE, 20100, "ipfs://cid-a2")
        registry.publish(owner, BOB, 20000, "ipfs://cid-b")
        return trail

    def test_records_committed_events(self, audited):
        assert len(audited) == 4
        assert [e.event_type for e in audited.entries()] == [
            "RevocationPublished", "StatusChanged", "RevocationPublished", "RevocationPublished",
        ]

    def test_chain_links(self, audited):
        entries = audited.entries()
        assert entries[0].previous_digest == GENESIS_DIGEST
        for prev, entry in zip(entries, entries[1:]):
            assert entry.previous_digest == prev.digest
        assert audited.head == entries[-1].digest
        assert audited.verify_chain() == (True, None)

    def test_tampering_detected(self, audited):
        entries = audited.entries()
        entries[1].payload["new_version"] = 99

        assert audited.verify_chain() == (False, 1)

    def test_history_per_holder(self, audited):
        history = audited.history(key_hex(derive_key(ALICE)))
        assert [e.event_type for e in history] == [
            "RevocationPublished", "StatusChanged", "RevocationPublished",
        ]
        assert history[-1].payload["evidence_pointer"] == "ipfs://cid-a2"

    def test_failed_calls_not_audited(self, registry, owner, stranger):
        trail = AuditTrail().attach(registry.bus)
        with pytest.raises(NotAuthorized):
            registry.publish(stranger, ALICE, 20000, "ipfs://cid-a")

        assert len(trail) == 0
        assert trail.head == GENESIS_DIGEST

    def test_export(self, audited):
        exported = audited.export()
        assert len(exported) == 4
        assert exported[0]["sequence"] == 2
        assert set(exported[0]) == {
            "sequence", "event_type", "payload", "timestamp", "previous_digest", "digest",
        }
