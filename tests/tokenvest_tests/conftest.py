from __future__ import annotations

import pytest

from tokenvest.core.token_ledger import InMemoryTokenLedger, LedgerDirectory
from tokenvest.core.vesting_events import VestingEventLog
from tokenvest.core.vesting_metrics import VestingMetrics
from tokenvest.core.vesting_service import OrganizationVestingService

START = 1_700_000_000
CUSTODY = "0xcustody"
ADMIN = "0xadmin"
STAKEHOLDER = "0xalice"
TOKEN_REF = "ACME"


class ManualClock:
    def __init__(self, start_time: int):
        self.current_time = start_time

    def now(self) -> int:
        return self.current_time

    def advance(self, seconds: int):
        self.current_time += seconds

    def set(self, timestamp: int):
        self.current_time = timestamp


@pytest.fixture
def clock():
    return ManualClock(start_time=START)


@pytest.fixture
def token():
    """ERC20-style ledger with the admin funded and custody approved."""
    ledger = InMemoryTokenLedger(name="Acme Token", symbol=TOKEN_REF)
    ledger.mint(ADMIN, ADMIN, 10_000)
    ledger.approve(ADMIN, CUSTODY, 10_000)
    return ledger


@pytest.fixture
def ledgers(token):
    return LedgerDirectory({TOKEN_REF: token.bind(CUSTODY)})


@pytest.fixture
def service(ledgers, clock):
    return OrganizationVestingService(
        ledgers,
        custody_address=CUSTODY,
        time_provider=clock.now,
        events=VestingEventLog(),
        metrics=VestingMetrics(),
    )


@pytest.fixture
def organization(service):
    """The admin registered as an organization on the ACME ledger."""
    return service.register_organization(ADMIN, "Acme", TOKEN_REF)


@pytest.fixture
def funded_stakeholder(service, organization):
    """1000 tokens vesting to the stakeholder over 1000 seconds from START."""
    return service.add_stakeholder(ADMIN, organization.org_id, STAKEHOLDER, 1000, START, 1000)
