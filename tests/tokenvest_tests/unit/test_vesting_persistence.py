import json

import pytest

from tokenvest.core.vesting_exceptions import VestingStateError
from tokenvest.core.vesting_persistence import VestingStatePersistence

START = 1_700_000_000


def test_load_without_file_starts_empty(tmp_path, ledgers):
    persistence = VestingStatePersistence(tmp_path / "state.json")

    assert persistence.load_state() is None
    service = persistence.load(ledgers, custody_address="0xcustody")
    assert service.stats()["organizations"] == 0
    assert service.custody_address == "0xcustody"


def test_save_and_load_round_trip(tmp_path, service, funded_stakeholder, ledgers, clock):
    clock.set(START + 100)
    service.claim_tokens("0xalice", "0xadmin")
    path = tmp_path / "nested" / "state.json"
    persistence = VestingStatePersistence(path)

    persistence.save(service)

    assert path.exists()
    assert not [p for p in path.parent.iterdir() if p.name.startswith(".vesting_state.")]
    data = json.loads(path.read_text())
    assert data["schedules"]["0xadmin"]["0xalice"]["claimed_amount"] == 100

    restored = persistence.load(ledgers, time_provider=clock.now)
    assert restored.custody_address == "0xcustody"
    assert restored.get_vesting_schedule("0xadmin", "0xalice") == service.get_vesting_schedule("0xadmin", "0xalice")
    assert restored.is_whitelisted("0xadmin", "0xalice")


def test_corrupt_json_raises_state_error(tmp_path, ledgers):
    path = tmp_path / "state.json"
    path.write_text("{not json")

    with pytest.raises(VestingStateError):
        VestingStatePersistence(path).load(ledgers)


@pytest.mark.parametrize(
    "state",
    [
        {"version": 99},
        {"version": 1, "custody_address": "0xc", "schedules": {"0xorg": {"0xa": {"total_amount": 1}}}},
        {
            "version": 1,
            "custody_address": "0xc",
            "schedules": {
                "0xorg": {"0xa": {"total_amount": 5, "start_time": 0, "duration": 1, "claimed_amount": 6}}
            },
        },
    ],
)
def test_invalid_snapshot_raises_state_error(tmp_path, ledgers, state):
    path = tmp_path / "state.json"
    path.write_text(json.dumps(state))

    with pytest.raises(VestingStateError):
        VestingStatePersistence(path).load(ledgers)


def test_empty_path_rejected():
    with pytest.raises(ValueError):
        VestingStatePersistence("")
