"""
Vesting notifications.

Every committed state change is appended to an in-process event log and
handed to subscribers (indexers, UIs, webhook relays). Subscribers run after
the change is committed; a failing subscriber is logged and never undoes it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class VestingEventType(str, Enum):
    """Notification types emitted by the vesting service."""

    ORGANIZATION_REGISTERED = "OrganizationRegistered"
    STAKEHOLDER_ADDED = "StakeholderAdded"
    TOKENS_CLAIMED = "TokensClaimed"
    ADDRESS_WHITELISTED = "AddressWhitelisted"
    ADDRESS_REMOVED_FROM_WHITELIST = "AddressRemovedFromWhitelist"


@dataclass
class VestingEvent:
    event_type: VestingEventType
    org_id: str
    data: dict[str, Any]
    timestamp: float = field(default_factory=time.time)
    sequence: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event_type.value,
            "org_id": self.org_id,
            "data": dict(self.data),
            "timestamp": self.timestamp,
            "sequence": self.sequence,
        }


Subscriber = Callable[[VestingEvent], None]


class VestingEventLog:
    """
    Append-only event log with synchronous subscribers.

    Thread-safe: emission order matches ``sequence``.
    """

    # Keep memory bounded for long-running services
    MAX_EVENTS = 10_000

    def __init__(self, max_events: int = MAX_EVENTS):
        self._events: list[VestingEvent] = []
        self._subscribers: list[tuple[Subscriber, frozenset[VestingEventType] | None]] = []
        self._lock = threading.RLock()
        self._sequence = 0
        self._max_events = max_events

    def subscribe(
        self,
        callback: Subscriber,
        event_types: list[VestingEventType] | None = None,
    ) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        entry = (callback, frozenset(event_types) if event_types else None)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def emit(self, event_type: VestingEventType, org_id: str, **data: Any) -> VestingEvent:
        with self._lock:
            self._sequence += 1
            event = VestingEvent(
                event_type=event_type,
                org_id=org_id,
                data=data,
                sequence=self._sequence,
            )
            self._events.append(event)
            if len(self._events) > self._max_events:
                del self._events[: len(self._events) - self._max_events]
            subscribers = [
                callback
                for callback, types in self._subscribers
                if types is None or event_type in types
            ]

        logger.info(
            "Vesting event: %s",
            event_type.value,
            extra={"event": "vesting.notification", "event_type": event_type.value, "sequence": event.sequence},
        )

        for callback in subscribers:
            try:
                callback(event)
            except Exception as exc:  # subscriber code is outside our control
                logger.error(
                    "Event subscriber failed: %s",
                    type(exc).__name__,
                    extra={"event": "vesting.subscriber_failed", "event_type": event_type.value},
                    exc_info=True,
                )
        return event

    def events(
        self,
        org_id: str | None = None,
        event_type: VestingEventType | None = None,
        limit: int | None = None,
    ) -> list[VestingEvent]:
        with self._lock:
            matched = [
                event
                for event in self._events
                if (org_id is None or event.org_id == org_id)
                and (event_type is None or event.event_type == event_type)
            ]
        if limit is not None:
            matched = matched[-limit:] if limit > 0 else []
        return matched

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
