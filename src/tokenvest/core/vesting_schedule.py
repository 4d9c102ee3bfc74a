"""
Vesting engine: schedule record and linear release math.

All arithmetic is integer arithmetic. Intermediate vested amounts are
truncated (floor division); the remainder is released when the schedule
reaches its end, so the final claim may be a few units larger.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from tokenvest.core.vesting_exceptions import VestingValidationError


@dataclass
class VestingSchedule:
    """Linear vesting grant for one (organization, stakeholder) pair."""

    total_amount: int
    start_time: int
    duration: int
    claimed_amount: int = 0

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    @property
    def fully_claimed(self) -> bool:
        return self.claimed_amount >= self.total_amount

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["end_time"] = self.end_time
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VestingSchedule":
        schedule = cls(
            total_amount=data["total_amount"],
            start_time=data["start_time"],
            duration=data["duration"],
            claimed_amount=data.get("claimed_amount", 0),
        )
        validate_schedule_parameters(schedule.total_amount, schedule.start_time, schedule.duration)
        _require_uint("claimed_amount", schedule.claimed_amount)
        if schedule.claimed_amount > schedule.total_amount:
            raise VestingValidationError(
                "Claimed amount cannot exceed total amount.",
                details={"claimed_amount": schedule.claimed_amount, "total_amount": schedule.total_amount},
            )
        return schedule


def _require_uint(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise VestingValidationError(f"{name} must be an integer.", details={name: repr(value)})
    if value < 0:
        raise VestingValidationError(f"{name} cannot be negative.", details={name: value})


def validate_schedule_parameters(total_amount: int, start_time: int, duration: int) -> None:
    """
    Validate the parameters of a new schedule.

    Raises:
        VestingValidationError: non-integer or negative values, a zero
            total amount, or a zero duration (the engine divides by it).
    """
    _require_uint("total_amount", total_amount)
    _require_uint("start_time", start_time)
    _require_uint("duration", duration)
    if total_amount == 0:
        raise VestingValidationError("Total amount must be positive.", details={"total_amount": 0})
    if duration == 0:
        raise VestingValidationError("Duration must be positive.", details={"duration": 0})


def vested_amount(schedule: VestingSchedule, now: int) -> int:
    """
    Calculate how much of ``schedule`` has vested at ``now``.

    Returns ``total_amount`` once ``now`` reaches the end of the schedule,
    ``floor(total * elapsed / duration)`` while vesting, and 0 before the
    start time.
    """
    if now >= schedule.start_time + schedule.duration:
        return schedule.total_amount
    if now <= schedule.start_time:
        return 0
    return schedule.total_amount * (now - schedule.start_time) // schedule.duration


def claimable_amount(schedule: VestingSchedule, now: int) -> int:
    """Vested amount at ``now`` minus what has already been claimed."""
    return max(0, vested_amount(schedule, now) - schedule.claimed_amount)
