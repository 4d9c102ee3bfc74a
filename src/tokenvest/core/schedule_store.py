"""
Vesting schedule store.

Holds one ``VestingSchedule`` per (organization, stakeholder) key. Readers get
copies; only ``record_claim`` / ``revert_claim`` mutate a stored schedule.
Mutating workflows serialize per key through ``lock_for``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Iterator

from tokenvest.core.vesting_exceptions import (
    ScheduleExistsError,
    ScheduleNotFoundError,
    VestingValidationError,
)
from tokenvest.core.vesting_schedule import VestingSchedule

logger = logging.getLogger(__name__)

ScheduleKey = tuple[str, str]


class KeyedLockTable:
    """Lazily created mutual-exclusion lock per (organization, stakeholder) key."""

    def __init__(self) -> None:
        self._locks: dict[ScheduleKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: ScheduleKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class VestingScheduleStore:
    def __init__(self) -> None:
        self._schedules: dict[ScheduleKey, VestingSchedule] = {}
        self._lock = threading.RLock()
        self._key_locks = KeyedLockTable()

    def lock_for(self, org_id: str, stakeholder: str) -> threading.Lock:
        """Lock serializing every mutating workflow on one schedule key."""
        return self._key_locks.get((org_id, stakeholder))

    def create(self, org_id: str, stakeholder: str, schedule: VestingSchedule) -> VestingSchedule:
        """Store a new schedule. Schedules are never replaced."""
        key = (org_id, stakeholder)
        with self._lock:
            if key in self._schedules:
                raise ScheduleExistsError(
                    f"Stakeholder {stakeholder} already has a schedule under {org_id}.",
                    details={"org_id": org_id, "stakeholder": stakeholder},
                )
            self._schedules[key] = replace(schedule, claimed_amount=0)
            return replace(self._schedules[key])

    def get(self, org_id: str, stakeholder: str) -> VestingSchedule | None:
        with self._lock:
            schedule = self._schedules.get((org_id, stakeholder))
            return replace(schedule) if schedule is not None else None

    def exists(self, org_id: str, stakeholder: str) -> bool:
        with self._lock:
            return (org_id, stakeholder) in self._schedules

    def record_claim(self, org_id: str, stakeholder: str, amount: int) -> VestingSchedule:
        """Advance ``claimed_amount`` by ``amount``; returns the updated copy."""
        with self._lock:
            schedule = self._require(org_id, stakeholder)
            if amount <= 0:
                raise VestingValidationError("Claim amount must be positive.", details={"amount": amount})
            if schedule.claimed_amount + amount > schedule.total_amount:
                raise VestingValidationError(
                    "Claim would exceed the granted total.",
                    details={
                        "claimed_amount": schedule.claimed_amount,
                        "amount": amount,
                        "total_amount": schedule.total_amount,
                    },
                )
            schedule.claimed_amount += amount
            return replace(schedule)

    def revert_claim(self, org_id: str, stakeholder: str, previous_claimed: int) -> None:
        """Restore ``claimed_amount`` after a payout that did not go through."""
        with self._lock:
            schedule = self._require(org_id, stakeholder)
            logger.warning(
                "Reverting claimed amount %s -> %s",
                schedule.claimed_amount,
                previous_claimed,
                extra={"event": "schedule_store.claim_reverted", "org_id": org_id},
            )
            schedule.claimed_amount = previous_claimed

    def stakeholders(self, org_id: str) -> list[str]:
        with self._lock:
            return sorted(stakeholder for org, stakeholder in self._schedules if org == org_id)

    def items(self) -> Iterator[tuple[ScheduleKey, VestingSchedule]]:
        with self._lock:
            snapshot = [(key, replace(schedule)) for key, schedule in self._schedules.items()]
        return iter(snapshot)

    def _require(self, org_id: str, stakeholder: str) -> VestingSchedule:
        schedule = self._schedules.get((org_id, stakeholder))
        if schedule is None:
            raise ScheduleNotFoundError(
                f"No vesting schedule for {stakeholder} under {org_id}.",
                details={"org_id": org_id, "stakeholder": stakeholder},
            )
        return schedule

    def __len__(self) -> int:
        with self._lock:
            return len(self._schedules)

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            result: dict[str, dict[str, Any]] = {}
            for (org_id, stakeholder), schedule in self._schedules.items():
                result.setdefault(org_id, {})[stakeholder] = {
                    "total_amount": schedule.total_amount,
                    "start_time": schedule.start_time,
                    "duration": schedule.duration,
                    "claimed_amount": schedule.claimed_amount,
                }
            return result

    @classmethod
    def from_dict(cls, data: dict[str, dict[str, Any]]) -> "VestingScheduleStore":
        store = cls()
        for org_id, entries in data.items():
            for stakeholder, raw in entries.items():
                store._schedules[(org_id, stakeholder)] = VestingSchedule.from_dict(raw)
        return store
