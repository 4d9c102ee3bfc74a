"""
Vesting-specific exception hierarchy for tokenvest.

Every rejected operation raises one of these typed exceptions. Each class
carries a stable ``code`` and the HTTP status the API layer answers with, so
callers can decide whether to retry (e.g. after raising an allowance).
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class VestingError(Exception):
    """Base exception for all vesting-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried once the caller
            changes something (time passes, allowance is raised, ...)
    """

    code = "vesting_error"
    http_status = 400
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Registry & Access Errors ====================


class AlreadyRegisteredError(VestingError):
    """Raised when an identity tries to register a second organization."""

    code = "already_registered"
    http_status = 409


class NotAuthorizedError(VestingError):
    """Raised when a non-admin calls an admin-only operation."""

    code = "not_authorized"
    http_status = 403


class AlreadyWhitelistedError(VestingError):
    """Raised when a stakeholder is already whitelisted for an organization."""

    code = "already_whitelisted"
    http_status = 409


class ScheduleExistsError(AlreadyWhitelistedError):
    """Raised when re-adding a stakeholder whose schedule is only de-whitelisted.

    Schedules are never replaced, so the stakeholder must be re-enabled
    with a whitelist call instead.
    """

    code = "schedule_exists"


class NotWhitelistedError(VestingError):
    """Raised when a stakeholder is not whitelisted for an organization."""

    code = "not_whitelisted"
    http_status = 403


# ==================== Custody Errors ====================


class InsufficientBalanceError(VestingError):
    """Raised when the admin's ledger balance does not cover a deposit."""

    code = "insufficient_balance"
    http_status = 422
    recoverable = True


class InsufficientAllowanceError(VestingError):
    """Raised when the admin's allowance to the custody address is too low."""

    code = "insufficient_allowance"
    http_status = 422
    recoverable = True


class CustodyTransferFailedError(VestingError):
    """Raised when the token ledger refuses a custody or payout transfer."""

    code = "custody_transfer_failed"
    http_status = 502


class LedgerUnavailableError(VestingError):
    """Raised when no ledger is known for an organization's token reference."""

    code = "ledger_unavailable"
    http_status = 503


# ==================== Claim Errors ====================


class VestingNotStartedError(VestingError):
    """Raised when claiming before the schedule's start time."""

    code = "vesting_not_started"
    http_status = 409
    recoverable = True


class NothingToClaimError(VestingError):
    """Raised when the claimable amount is zero."""

    code = "nothing_to_claim"
    http_status = 409
    recoverable = True


class ScheduleNotFoundError(VestingError):
    """Raised when a stakeholder has no schedule under an organization."""

    code = "schedule_not_found"
    http_status = 404


# ==================== Validation & State Errors ====================


class VestingValidationError(VestingError):
    """Raised when operation parameters are malformed.

    Examples: empty identity, non-integer amount, zero duration.
    """

    code = "invalid_request"
    http_status = 400


class VestingStateError(VestingError):
    """Raised when a persisted state snapshot cannot be loaded."""

    code = "state_error"
    http_status = 500


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a retryable rejection.

    Args:
        exc: The exception to check

    Returns:
        True if the caller may retry the operation after changing conditions
    """
    if isinstance(exc, VestingError):
        return exc.recoverable

    recoverable_types = (
        ConnectionError,
        TimeoutError,
    )
    return isinstance(exc, recoverable_types)


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, VestingError):
        context["code"] = exc.code
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
