import pytest

from tokenvest.core.vesting_exceptions import VestingValidationError
from tokenvest.core.vesting_schedule import (
    VestingSchedule,
    claimable_amount,
    validate_schedule_parameters,
    vested_amount,
)


def _schedule(total=1000, start=1_000, duration=1_000, claimed=0):
    return VestingSchedule(total_amount=total, start_time=start, duration=duration, claimed_amount=claimed)


def test_vested_amount_is_linear_between_start_and_end():
    schedule = _schedule()

    assert vested_amount(schedule, 500) == 0
    assert vested_amount(schedule, 1_000) == 0
    assert vested_amount(schedule, 1_250) == 250
    assert vested_amount(schedule, 1_500) == 500
    assert vested_amount(schedule, 2_000) == 1000
    assert vested_amount(schedule, 10_000) == 1000


def test_vested_amount_truncates_and_releases_remainder_at_end():
    schedule = _schedule(total=10, duration=3)

    assert vested_amount(schedule, 1_001) == 3
    assert vested_amount(schedule, 1_002) == 6
    assert vested_amount(schedule, 1_003) == 10


def test_vested_amount_handles_large_totals_exactly():
    total = 2**200
    schedule = _schedule(total=total, duration=7)

    assert vested_amount(schedule, 1_003) == total * 3 // 7
    assert vested_amount(schedule, 1_007) == total


def test_claimable_amount_subtracts_claimed():
    schedule = _schedule(claimed=400)

    assert claimable_amount(schedule, 1_500) == 100
    assert claimable_amount(schedule, 1_300) == 0
    assert claimable_amount(schedule, 2_000) == 600


def test_end_time_and_fully_claimed():
    schedule = _schedule(claimed=1000)

    assert schedule.end_time == 2_000
    assert schedule.fully_claimed
    assert not _schedule().fully_claimed


def test_to_dict_includes_end_time():
    data = _schedule(claimed=5).to_dict()

    assert data == {
        "total_amount": 1000,
        "start_time": 1_000,
        "duration": 1_000,
        "claimed_amount": 5,
        "end_time": 2_000,
    }


def test_from_dict_rejects_claimed_above_total():
    with pytest.raises(VestingValidationError):
        VestingSchedule.from_dict({"total_amount": 10, "start_time": 0, "duration": 5, "claimed_amount": 11})


@pytest.mark.parametrize(
    "total, start, duration",
    [
        (0, 0, 10),
        (100, 0, 0),
        (-1, 0, 10),
        (100, -5, 10),
        (100, 0, -10),
        (100.5, 0, 10),
        (True, 0, 10),
        ("100", 0, 10),
    ],
)
def test_validate_schedule_parameters_rejects_bad_input(total, start, duration):
    with pytest.raises(VestingValidationError):
        validate_schedule_parameters(total, start, duration)


def test_validate_schedule_parameters_accepts_epoch_start():
    validate_schedule_parameters(1, 0, 1)
