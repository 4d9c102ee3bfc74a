"""
Organization vesting service.

Owns the organization registry, the whitelist table and the schedule store,
and runs every state-changing workflow:

- register_organization: the caller becomes organization id and admin
- add_stakeholder: custody deposit through the token ledger, then schedule
- whitelist_address / remove_whitelist_address: claim gate toggles
- claim_tokens: linear release paid out of custody

Operations on one (organization, stakeholder) pair are serialized by a
per-key lock held across the ledger call. A deposit only commits state after
the ledger confirms the transfer; a claim commits its increment first and
restores it if the payout fails.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from tokenvest.core.config import Config
from tokenvest.core.logging_config import truncate_identity
from tokenvest.core.organization_registry import Organization, OrganizationRegistry
from tokenvest.core.schedule_store import VestingScheduleStore
from tokenvest.core.token_ledger import LedgerDirectory, LedgerOperationError, TokenLedger
from tokenvest.core.vesting_events import VestingEventLog, VestingEventType
from tokenvest.core.vesting_exceptions import (
    AlreadyWhitelistedError,
    CustodyTransferFailedError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    LedgerUnavailableError,
    NothingToClaimError,
    NotWhitelistedError,
    ScheduleExistsError,
    ScheduleNotFoundError,
    VestingError,
    VestingNotStartedError,
    VestingStateError,
    VestingValidationError,
)
from tokenvest.core.vesting_metrics import VestingMetrics
from tokenvest.core.vesting_schedule import (
    VestingSchedule,
    claimable_amount,
    validate_schedule_parameters,
    vested_amount,
)
from tokenvest.core.whitelist import WhitelistTable

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

# Errors a remote ledger may raise instead of returning False
LEDGER_FAILURES = (LedgerOperationError, ConnectionError, TimeoutError)


class OrganizationVestingService:
    def __init__(
        self,
        ledgers: LedgerDirectory,
        custody_address: str | None = None,
        time_provider: Callable[[], int] | None = None,
        events: VestingEventLog | None = None,
        metrics: VestingMetrics | None = None,
        registry: OrganizationRegistry | None = None,
        whitelist: WhitelistTable | None = None,
        schedules: VestingScheduleStore | None = None,
    ):
        self.ledgers = ledgers
        self.custody_address = self._identity(custody_address or Config.CUSTODY_ADDRESS, "custody_address")
        self.events = events or VestingEventLog()
        self.metrics = metrics or VestingMetrics()
        self.registry = registry or OrganizationRegistry()
        self.whitelist = whitelist or WhitelistTable()
        self.schedules = schedules or VestingScheduleStore()
        self._time_provider = time_provider or (lambda: int(time.time()))
        logger.info(
            "OrganizationVestingService initialized (custody %s, deterministic time provider: %s)",
            truncate_identity(self.custody_address),
            bool(time_provider),
            extra={"event": "vesting.service_initialized"},
        )

    # ==================== Helpers ====================

    def current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def _resolve_time(self, current_time: int | None) -> int:
        if current_time is None:
            return self.current_time()
        if not isinstance(current_time, int) or isinstance(current_time, bool) or current_time < 0:
            raise VestingValidationError("current_time must be a non-negative integer timestamp.")
        return current_time

    @staticmethod
    def _identity(value: Any, field_name: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise VestingValidationError(f"{field_name} cannot be empty.", details={"field": field_name})
        return value.strip().lower()

    def _ledger_for(self, organization: Organization) -> TokenLedger:
        ledger = self.ledgers.get(organization.token_reference)
        if ledger is None:
            raise LedgerUnavailableError(
                f"No token ledger configured for {organization.token_reference}.",
                details={"token_reference": organization.token_reference},
            )
        return ledger

    @contextmanager
    def _track(self, operation: str) -> Iterator[None]:
        try:
            yield
        except VestingError as exc:
            self.metrics.record_failure(operation, exc.code)
            logger.info(
                "%s rejected: %s",
                operation,
                exc.code,
                extra={"event": f"vesting.{operation}_rejected", "code": exc.code},
            )
            raise

    # ==================== Organization Registry ====================

    def register_organization(self, caller: str, name: str, token_reference: str) -> Organization:
        """Register ``caller`` as organization id and admin."""
        with self._track("register_organization"):
            caller = self._identity(caller, "caller")
            organization = self.registry.register(
                caller, name, token_reference, registered_at=self.current_time()
            )

        self.metrics.record_registration()
        logger.info(
            "Organization %s registered",
            truncate_identity(organization.org_id),
            extra={"event": "vesting.organization_registered", "token_reference": organization.token_reference},
        )
        self.events.emit(
            VestingEventType.ORGANIZATION_REGISTERED,
            organization.org_id,
            name=organization.name,
            token_reference=organization.token_reference,
            admin=organization.admin,
        )
        return organization

    # ==================== Whitelist / Stakeholders ====================

    def add_stakeholder(
        self,
        caller: str,
        org_id: str,
        stakeholder: str,
        total_amount: int,
        start_time: int,
        duration: int,
    ) -> VestingSchedule:
        """
        Deposit ``total_amount`` into custody and create the stakeholder's schedule.

        Raises:
            NotAuthorizedError: caller is not the organization admin
            AlreadyWhitelistedError: stakeholder already whitelisted
            ScheduleExistsError: stakeholder has a (de-whitelisted) schedule
            VestingValidationError: malformed schedule parameters
            InsufficientBalanceError / InsufficientAllowanceError: ledger
                pre-checks failed
            CustodyTransferFailedError: the ledger refused the deposit
        """
        with self._track("add_stakeholder"):
            caller = self._identity(caller, "caller")
            org_id = self._identity(org_id, "org_id")
            stakeholder = self._identity(stakeholder, "stakeholder")
            organization = self.registry.require_admin(org_id, caller)
            validate_schedule_parameters(total_amount, start_time, duration)

            with self.schedules.lock_for(org_id, stakeholder):
                if self.whitelist.is_whitelisted(org_id, stakeholder):
                    raise AlreadyWhitelistedError(
                        f"{stakeholder} is already whitelisted for {org_id}.",
                        details={"org_id": org_id, "stakeholder": stakeholder},
                    )
                if self.schedules.exists(org_id, stakeholder):
                    raise ScheduleExistsError(
                        f"{stakeholder} already has a schedule under {org_id}; re-whitelist instead.",
                        details={"org_id": org_id, "stakeholder": stakeholder},
                    )

                ledger = self._ledger_for(organization)
                balance = ledger.balance_of(caller)
                if balance < total_amount:
                    raise InsufficientBalanceError(
                        f"Admin balance {balance} does not cover {total_amount}.",
                        details={"balance": balance, "required": total_amount},
                    )
                allowance = ledger.allowance(caller, self.custody_address)
                if allowance < total_amount:
                    raise InsufficientAllowanceError(
                        f"Allowance {allowance} to custody does not cover {total_amount}.",
                        details={"allowance": allowance, "required": total_amount},
                    )

                try:
                    transferred = ledger.transfer_from(caller, self.custody_address, total_amount)
                except LEDGER_FAILURES as exc:
                    raise CustodyTransferFailedError(
                        f"Custody deposit failed: {exc}",
                        details={"org_id": org_id, "stakeholder": stakeholder},
                    ) from exc
                if not transferred:
                    raise CustodyTransferFailedError(
                        "Custody deposit was refused by the token ledger.",
                        details={"org_id": org_id, "stakeholder": stakeholder},
                    )

                schedule = self.schedules.create(
                    org_id,
                    stakeholder,
                    VestingSchedule(total_amount=total_amount, start_time=start_time, duration=duration),
                )
                self.whitelist.set(org_id, stakeholder, True)

        self.metrics.record_deposit(organization.token_reference, total_amount)
        logger.info(
            "Stakeholder %s added to %s",
            truncate_identity(stakeholder),
            truncate_identity(org_id),
            extra={
                "event": "vesting.stakeholder_added",
                "total_amount": total_amount,
                "start_time": start_time,
                "duration": duration,
            },
        )
        self.events.emit(
            VestingEventType.STAKEHOLDER_ADDED,
            org_id,
            stakeholder=stakeholder,
            total_amount=total_amount,
            start_time=start_time,
            duration=duration,
        )
        return schedule

    def whitelist_address(self, caller: str, org_id: str, stakeholder: str) -> None:
        """Re-enable claims for a stakeholder that already holds a schedule."""
        with self._track("whitelist_address"):
            caller = self._identity(caller, "caller")
            org_id = self._identity(org_id, "org_id")
            stakeholder = self._identity(stakeholder, "stakeholder")
            self.registry.require_admin(org_id, caller)
            if not self.schedules.exists(org_id, stakeholder):
                raise ScheduleNotFoundError(
                    f"{stakeholder} has no schedule under {org_id}; add the stakeholder first.",
                    details={"org_id": org_id, "stakeholder": stakeholder},
                )

            with self.schedules.lock_for(org_id, stakeholder):
                if self.whitelist.is_whitelisted(org_id, stakeholder):
                    raise AlreadyWhitelistedError(
                        f"{stakeholder} is already whitelisted for {org_id}.",
                        details={"org_id": org_id, "stakeholder": stakeholder},
                    )
                self.whitelist.set(org_id, stakeholder, True)

        logger.info(
            "Stakeholder %s whitelisted for %s",
            truncate_identity(stakeholder),
            truncate_identity(org_id),
            extra={"event": "vesting.address_whitelisted"},
        )
        self.events.emit(VestingEventType.ADDRESS_WHITELISTED, org_id, stakeholder=stakeholder)

    def remove_whitelist_address(self, caller: str, org_id: str, stakeholder: str) -> None:
        """Block claims for a stakeholder without touching the schedule."""
        with self._track("remove_whitelist_address"):
            caller = self._identity(caller, "caller")
            org_id = self._identity(org_id, "org_id")
            stakeholder = self._identity(stakeholder, "stakeholder")
            self.registry.require_admin(org_id, caller)
            if not self.schedules.exists(org_id, stakeholder):
                raise NotWhitelistedError(
                    f"{stakeholder} is not whitelisted for {org_id}.",
                    details={"org_id": org_id, "stakeholder": stakeholder},
                )

            with self.schedules.lock_for(org_id, stakeholder):
                if not self.whitelist.is_whitelisted(org_id, stakeholder):
                    raise NotWhitelistedError(
                        f"{stakeholder} is not whitelisted for {org_id}.",
                        details={"org_id": org_id, "stakeholder": stakeholder},
                    )
                self.whitelist.set(org_id, stakeholder, False)

        logger.info(
            "Stakeholder %s removed from whitelist of %s",
            truncate_identity(stakeholder),
            truncate_identity(org_id),
            extra={"event": "vesting.address_removed_from_whitelist"},
        )
        self.events.emit(VestingEventType.ADDRESS_REMOVED_FROM_WHITELIST, org_id, stakeholder=stakeholder)

    # ==================== Claims ====================

    def claim_tokens(self, caller: str, org_id: str, current_time: int | None = None) -> int:
        """
        Pay out everything vested and not yet claimed to ``caller``.

        Returns:
            The amount transferred.

        Raises:
            NotWhitelistedError: caller is not whitelisted for the organization
            VestingNotStartedError: ``current_time`` precedes the start time
            NothingToClaimError: nothing vested since the last claim
            CustodyTransferFailedError: payout refused; claimed amount restored
        """
        with self._track("claim_tokens"):
            caller = self._identity(caller, "caller")
            org_id = self._identity(org_id, "org_id")
            now = self._resolve_time(current_time)

            # Schedules are never deleted, so keys without one never get a lock
            if not self.schedules.exists(org_id, caller):
                raise NotWhitelistedError(
                    f"{caller} is not whitelisted for {org_id}.",
                    details={"org_id": org_id, "stakeholder": caller},
                )

            with self.schedules.lock_for(org_id, caller):
                if not self.whitelist.is_whitelisted(org_id, caller):
                    raise NotWhitelistedError(
                        f"{caller} is not whitelisted for {org_id}.",
                        details={"org_id": org_id, "stakeholder": caller},
                    )
                schedule = self.schedules.get(org_id, caller)
                if schedule is None:
                    raise ScheduleNotFoundError(
                        f"No vesting schedule for {caller} under {org_id}.",
                        details={"org_id": org_id, "stakeholder": caller},
                    )
                if now < schedule.start_time:
                    raise VestingNotStartedError(
                        f"Vesting starts at {schedule.start_time}.",
                        details={"start_time": schedule.start_time, "current_time": now},
                    )

                claimable = vested_amount(schedule, now) - schedule.claimed_amount
                if claimable <= 0:
                    raise NothingToClaimError(
                        "No vested tokens available to claim.",
                        details={"claimed_amount": schedule.claimed_amount, "current_time": now},
                    )

                organization = self.registry.get(org_id)
                ledger = self._ledger_for(organization)
                previous_claimed = schedule.claimed_amount

                # Committed before the payout and reverted if the payout fails
                self.schedules.record_claim(org_id, caller, claimable)
                try:
                    transferred = ledger.transfer(caller, claimable)
                except LEDGER_FAILURES as exc:
                    self.schedules.revert_claim(org_id, caller, previous_claimed)
                    raise CustodyTransferFailedError(
                        f"Claim payout failed: {exc}",
                        details={"org_id": org_id, "stakeholder": caller, "amount": claimable},
                    ) from exc
                if not transferred:
                    self.schedules.revert_claim(org_id, caller, previous_claimed)
                    raise CustodyTransferFailedError(
                        "Claim payout was refused by the token ledger.",
                        details={"org_id": org_id, "stakeholder": caller, "amount": claimable},
                    )

        self.metrics.record_claim(organization.token_reference, claimable)
        logger.info(
            "Claimed %d tokens for %s from %s",
            claimable,
            truncate_identity(caller),
            truncate_identity(org_id),
            extra={"event": "vesting.tokens_claimed", "amount": claimable},
        )
        self.events.emit(VestingEventType.TOKENS_CLAIMED, org_id, stakeholder=caller, amount=claimable)
        return claimable

    # ==================== Read Accessors ====================

    def get_organization(self, org_id: str) -> Organization | None:
        return self.registry.get(self._identity(org_id, "org_id"))

    def is_registered(self, org_id: str) -> bool:
        return self.registry.is_registered(self._identity(org_id, "org_id"))

    def is_whitelisted(self, org_id: str, stakeholder: str) -> bool:
        return self.whitelist.is_whitelisted(
            self._identity(org_id, "org_id"), self._identity(stakeholder, "stakeholder")
        )

    def get_vesting_schedule(self, org_id: str, stakeholder: str) -> VestingSchedule | None:
        return self.schedules.get(self._identity(org_id, "org_id"), self._identity(stakeholder, "stakeholder"))

    def _require_schedule(self, org_id: str, stakeholder: str) -> VestingSchedule:
        schedule = self.get_vesting_schedule(org_id, stakeholder)
        if schedule is None:
            raise ScheduleNotFoundError(
                f"No vesting schedule for {stakeholder} under {org_id}.",
                details={"org_id": org_id, "stakeholder": stakeholder},
            )
        return schedule

    def get_vested_amount(self, org_id: str, stakeholder: str, current_time: int | None = None) -> int:
        schedule = self._require_schedule(org_id, stakeholder)
        return vested_amount(schedule, self._resolve_time(current_time))

    def get_claimable_amount(self, org_id: str, stakeholder: str, current_time: int | None = None) -> int:
        """Amount a claim would pay at ``current_time``, ignoring the whitelist."""
        schedule = self._require_schedule(org_id, stakeholder)
        return claimable_amount(schedule, self._resolve_time(current_time))

    def list_stakeholders(self, org_id: str) -> list[dict[str, Any]]:
        org_id = self._identity(org_id, "org_id")
        listing = []
        for stakeholder in self.schedules.stakeholders(org_id):
            schedule = self.schedules.get(org_id, stakeholder)
            listing.append(
                {
                    "stakeholder": stakeholder,
                    "whitelisted": self.whitelist.is_whitelisted(org_id, stakeholder),
                    "schedule": schedule.to_dict(),
                }
            )
        return listing

    def stats(self) -> dict[str, Any]:
        return {
            "organizations": len(self.registry),
            "schedules": len(self.schedules),
            "events": len(self.events),
            "custody_address": self.custody_address,
        }

    def custody_outstanding(self) -> dict[str, int]:
        """Unclaimed scheduled tokens per token reference."""
        outstanding: dict[str, int] = {}
        for (org_id, _), schedule in self.schedules.items():
            organization = self.registry.get(org_id)
            if organization is None:
                continue
            reference = organization.token_reference
            outstanding[reference] = (
                outstanding.get(reference, 0) + schedule.total_amount - schedule.claimed_amount
            )
        return outstanding

    def _seed_custody_metrics(self) -> None:
        for reference, amount in self.custody_outstanding().items():
            self.metrics.set_custody(reference, amount)

    # ==================== Snapshots ====================

    def snapshot(self) -> dict[str, Any]:
        """Return the registry, whitelist and schedules as plain data."""
        return {
            "version": SNAPSHOT_VERSION,
            "custody_address": self.custody_address,
            "organizations": self.registry.to_dict(),
            "whitelist": self.whitelist.to_dict(),
            "schedules": self.schedules.to_dict(),
        }

    @classmethod
    def from_snapshot(
        cls,
        state: dict[str, Any],
        ledgers: LedgerDirectory,
        **kwargs: Any,
    ) -> "OrganizationVestingService":
        """Rebuild a service from ``snapshot()`` output."""
        if not isinstance(state, dict) or state.get("version") != SNAPSHOT_VERSION:
            raise VestingStateError(
                "Unsupported vesting state snapshot.",
                details={"version": state.get("version") if isinstance(state, dict) else None},
            )
        try:
            registry = OrganizationRegistry.from_dict(state.get("organizations", {}))
            whitelist = WhitelistTable.from_dict(state.get("whitelist", {}))
            schedules = VestingScheduleStore.from_dict(state.get("schedules", {}))
        except (KeyError, TypeError, AttributeError, VestingValidationError) as exc:
            raise VestingStateError(f"Corrupt vesting state snapshot: {exc}") from exc

        kwargs.setdefault("custody_address", state.get("custody_address"))
        service = cls(ledgers, registry=registry, whitelist=whitelist, schedules=schedules, **kwargs)
        service._seed_custody_metrics()
        logger.info(
            "Vesting state restored: %d organizations, %d schedules",
            len(registry),
            len(schedules),
            extra={"event": "vesting.state_restored"},
        )
        return service
