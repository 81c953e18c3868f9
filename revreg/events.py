"""
Registry Event Infrastructure

Events are the registry's side channel to the outside world. They are not
consumed internally: every successful mutating call produces a tuple of
events which is returned to the caller in a Receipt, appended to the
registry's EventLog for subscribers to drain, and dispatched to handlers
registered on the EventBus.

    ┌──────────────────────────────────────────────────────────────┐
    │  RevocationRegistry                                          │
    │    publish / unrevoke / addPublisher / ...                   │
    │        │ (on commit only)                                    │
    │        ├──► Receipt.events      returned to the caller       │
    │        ├──► EventLog            drained by subscribers       │
    │        └──► EventBus            pushed to handlers           │
    └──────────────────────────────────────────────────────────────┘

A failed call emits nothing.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Type

from revreg.keys import canonical_bytes, sha256_hex

logger = logging.getLogger(__name__)

ENVELOPE_FIELDS = frozenset({"event_id", "event_timestamp", "sequence"})


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ════════════════════════════════════════════════════════════════════════════
# EVENT BASE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """
    Base class for all registry events.

    ``sequence`` is assigned by the registry when the emitting call commits;
    it is the position of the event in the registry's total order.
    """

    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    event_timestamp: str = field(default_factory=_utc_now)
    sequence: int = 0

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def payload(self) -> Dict[str, Any]:
        """Event fields without the envelope metadata."""
        return {k: v for k, v in asdict(self).items() if k not in ENVELOPE_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return {"event_type": self.event_type, **asdict(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Rebuild the concrete event named by ``event_type``."""
        fields_ = {k: v for k, v in data.items() if k != "event_type"}
        return EVENT_TYPES.get(data.get("event_type", ""), cls)(**fields_)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def digest(self) -> str:
        """Digest over the event type and payload, independent of envelope ids."""
        return sha256_hex(canonical_bytes({"type": self.event_type, "payload": self.payload()}))


# ════════════════════════════════════════════════════════════════════════════
# DOMAIN EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class RevocationPublished(Event):
    """Emitted when a holder's record transitions to REVOKED."""
    key: str = ""
    epoch_days: int = 0
    evidence_pointer: str = ""


@dataclass
class StatusChanged(Event):
    """Emitted when a holder's record is un-revoked."""
    key: str = ""
    new_status: str = ""
    new_version: int = 0


@dataclass
class PublisherAdded(Event):
    address: str = ""


@dataclass
class PublisherRemoved(Event):
    address: str = ""


@dataclass
class OwnershipTransferred(Event):
    old_owner: str = ""
    new_owner: str = ""


EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.__name__: cls
    for cls in (
        RevocationPublished,
        StatusChanged,
        PublisherAdded,
        PublisherRemoved,
        OwnershipTransferred,
    )
}


@dataclass(frozen=True)
class Receipt:
    """Result of a committed mutating call."""
    operation: str
    events: Tuple[Event, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "events": [e.to_dict() for e in self.events],
        }


# ════════════════════════════════════════════════════════════════════════════
# EVENT LOG
# ════════════════════════════════════════════════════════════════════════════


class EventLog:
    """
    Drainable buffer of committed events.

    Subscribers poll ``drain()`` to take every event emitted since their last
    drain, in commit order.
    """

    def __init__(self, max_events: Optional[int] = None):
        self._events: List[Event] = []
        self._max_events = max_events
        self._lock = threading.Lock()

    def extend(self, events: Tuple[Event, ...]) -> None:
        with self._lock:
            self._events.extend(events)
            if self._max_events is not None and len(self._events) > self._max_events:
                dropped = len(self._events) - self._max_events
                del self._events[:dropped]
                logger.warning("event log full, dropped %d undrained events", dropped)

    def drain(self) -> List[Event]:
        with self._lock:
            events, self._events = self._events, []
            return events

    def peek(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


# ════════════════════════════════════════════════════════════════════════════
# EVENT BUS
# ════════════════════════════════════════════════════════════════════════════


EventHandler = Callable[[Event], None]


class Subscription(NamedTuple):
    handler: EventHandler
    event_types: Tuple[Type[Event], ...]
    priority: int

    def wants(self, event: Event) -> bool:
        return isinstance(event, self.event_types)


class EventHandlerError(Exception):
    """A subscriber raised while handling a committed event."""

    def __init__(self, event: Event, handler: EventHandler, cause: Exception):
        name = getattr(handler, "__name__", repr(handler))
        super().__init__(f"subscriber {name} raised on {event.event_type}: {cause}")
        self.event = event
        self.handler = handler
        self.cause = cause


class EventBus:
    """
    In-process fan-out of committed events to subscribers.

    Handlers run synchronously, highest priority first, ties in subscription
    order. A raising handler is reported to ``on_error`` (logged if none) and
    the remaining handlers still run; the registry call that emitted the event
    has already committed.

        bus = EventBus()

        @bus.subscribe(RevocationPublished)
        def on_revoked(event):
            print(event.key)
    """

    def __init__(self, on_error: Optional[Callable[[EventHandlerError], None]] = None):
        self._subscriptions: List[Subscription] = []
        self._counts: Counter = Counter()
        self._lock = threading.RLock()
        self._on_error = on_error

    def subscribe(self, *event_types: Type[Event], priority: int = 0) -> Callable[[EventHandler], EventHandler]:
        """Decorator form; no event types means every event."""
        wanted = event_types or (Event,)

        def register(handler: EventHandler) -> EventHandler:
            with self._lock:
                self._subscriptions.append(Subscription(handler, wanted, priority))
                self._subscriptions.sort(key=lambda s: s.priority, reverse=True)
            return handler
        return register

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Drop every subscription of ``handler``; False if there was none."""
        with self._lock:
            kept = [s for s in self._subscriptions if s.handler != handler]
            removed = len(kept) != len(self._subscriptions)
            self._subscriptions = kept
        return removed

    def publish(self, event: Event) -> None:
        with self._lock:
            self._counts["published"] += 1
            targets = [s.handler for s in self._subscriptions if s.wants(event)]

        for handler in targets:
            try:
                handler(event)
            except Exception as e:
                self._report(EventHandlerError(event, handler, e))

    def _report(self, error: EventHandlerError) -> None:
        with self._lock:
            self._counts["errors"] += 1
        if self._on_error is None:
            logger.error("%s", error, exc_info=error.cause)
        else:
            self._on_error(error)

    @property
    def metrics(self) -> Dict[str, int]:
        with self._lock:
            return {
                "published": self._counts["published"],
                "errors": self._counts["errors"],
                "handlers": len(self._subscriptions),
            }
