"""
Vesting API Blueprint

Organization registration, stakeholder schedules, whitelist toggles, claims
and the notification feed. Callers identify themselves with the ``caller``
field of the request body.
"""

from __future__ import annotations

import logging
from typing import Any, Tuple

from flask import Blueprint, request

from tokenvest.core.api_blueprints.base import (
    RequestValidationError,
    error_response,
    get_vesting_service,
    parse_body,
    parse_int_arg,
    success_response,
    vesting_error_response,
)
from tokenvest.core.input_validation_schemas import (
    AddStakeholderInput,
    CallerInput,
    ClaimInput,
    RegisterOrganizationInput,
    WhitelistInput,
)
from tokenvest.core.vesting_events import VestingEventType
from tokenvest.core.vesting_exceptions import VestingError
from tokenvest.core.vesting_schedule import claimable_amount, vested_amount

logger = logging.getLogger(__name__)

vesting_bp = Blueprint("vesting", __name__, url_prefix="/api/v1/vesting")

MAX_EVENT_PAGE = 1000


@vesting_bp.errorhandler(VestingError)
def handle_vesting_error(exc: VestingError) -> Tuple[Any, int]:
    return vesting_error_response(exc)


@vesting_bp.errorhandler(RequestValidationError)
def handle_request_validation_error(exc: RequestValidationError) -> Tuple[Any, int]:
    return error_response(
        exc.message,
        status=400,
        code="invalid_request",
        context={"errors": exc.errors} if exc.errors else None,
    )


# ==================== Organizations ====================


@vesting_bp.route("/organizations", methods=["POST"])
def register_organization() -> Tuple[Any, int]:
    """Register the caller as a new organization."""
    body = parse_body(RegisterOrganizationInput)
    organization = get_vesting_service().register_organization(
        body.caller, body.name, body.token_reference
    )
    return success_response({"organization": organization.to_dict()}, status=201)


@vesting_bp.route("/organizations/<org_id>", methods=["GET"])
def get_organization(org_id: str) -> Tuple[Any, int]:
    organization = get_vesting_service().get_organization(org_id)
    if organization is None:
        return error_response("Organization not found", status=404, code="organization_not_found")
    return success_response({"organization": organization.to_dict()})


@vesting_bp.route("/organizations/<org_id>/registered", methods=["GET"])
def is_registered(org_id: str) -> Tuple[Any, int]:
    return success_response(
        {"org_id": org_id.lower(), "registered": get_vesting_service().is_registered(org_id)}
    )


# ==================== Stakeholders ====================


@vesting_bp.route("/organizations/<org_id>/stakeholders", methods=["POST"])
def add_stakeholder(org_id: str) -> Tuple[Any, int]:
    """Deposit tokens into custody and create a stakeholder schedule."""
    body = parse_body(AddStakeholderInput)
    schedule = get_vesting_service().add_stakeholder(
        body.caller,
        org_id,
        body.stakeholder,
        body.total_amount,
        body.start_time,
        body.duration,
    )
    return success_response(
        {
            "org_id": org_id.lower(),
            "stakeholder": body.stakeholder.lower(),
            "schedule": schedule.to_dict(),
            "whitelisted": True,
        },
        status=201,
    )


@vesting_bp.route("/organizations/<org_id>/stakeholders", methods=["GET"])
def list_stakeholders(org_id: str) -> Tuple[Any, int]:
    stakeholders = get_vesting_service().list_stakeholders(org_id)
    return success_response({"org_id": org_id.lower(), "stakeholders": stakeholders})


@vesting_bp.route("/organizations/<org_id>/stakeholders/<stakeholder>", methods=["GET"])
def get_schedule(org_id: str, stakeholder: str) -> Tuple[Any, int]:
    """Schedule plus vested/claimable amounts at ``?at=<timestamp>`` (default now)."""
    service = get_vesting_service()
    schedule = service.get_vesting_schedule(org_id, stakeholder)
    if schedule is None:
        return error_response("Vesting schedule not found", status=404, code="schedule_not_found")

    at = parse_int_arg("at")
    as_of = at if at is not None else service.current_time()
    return success_response(
        {
            "org_id": org_id.lower(),
            "stakeholder": stakeholder.lower(),
            "schedule": schedule.to_dict(),
            "whitelisted": service.is_whitelisted(org_id, stakeholder),
            "as_of": as_of,
            "vested_amount": vested_amount(schedule, as_of),
            "claimable_amount": claimable_amount(schedule, as_of),
        }
    )


# ==================== Whitelist ====================


@vesting_bp.route("/organizations/<org_id>/whitelist", methods=["POST"])
def whitelist_address(org_id: str) -> Tuple[Any, int]:
    body = parse_body(WhitelistInput)
    get_vesting_service().whitelist_address(body.caller, org_id, body.stakeholder)
    return success_response(
        {"org_id": org_id.lower(), "stakeholder": body.stakeholder.lower(), "whitelisted": True}
    )


@vesting_bp.route("/organizations/<org_id>/whitelist/<stakeholder>", methods=["DELETE"])
def remove_whitelist_address(org_id: str, stakeholder: str) -> Tuple[Any, int]:
    body = parse_body(CallerInput)
    get_vesting_service().remove_whitelist_address(body.caller, org_id, stakeholder)
    return success_response(
        {"org_id": org_id.lower(), "stakeholder": stakeholder.lower(), "whitelisted": False}
    )


@vesting_bp.route("/organizations/<org_id>/whitelist/<stakeholder>", methods=["GET"])
def get_whitelist_status(org_id: str, stakeholder: str) -> Tuple[Any, int]:
    return success_response(
        {
            "org_id": org_id.lower(),
            "stakeholder": stakeholder.lower(),
            "whitelisted": get_vesting_service().is_whitelisted(org_id, stakeholder),
        }
    )


# ==================== Claims ====================


@vesting_bp.route("/organizations/<org_id>/claims", methods=["POST"])
def claim_tokens(org_id: str) -> Tuple[Any, int]:
    """Pay out the caller's vested, unclaimed tokens at the service clock."""
    body = parse_body(ClaimInput)
    service = get_vesting_service()
    amount = service.claim_tokens(body.caller, org_id)
    schedule = service.get_vesting_schedule(org_id, body.caller)
    return success_response(
        {
            "org_id": org_id.lower(),
            "stakeholder": body.caller.lower(),
            "claimed": amount,
            "schedule": schedule.to_dict() if schedule else None,
        }
    )


# ==================== Notifications ====================


@vesting_bp.route("/events", methods=["GET"])
def list_events() -> Tuple[Any, int]:
    raw_type = request.args.get("event_type")
    event_type = None
    if raw_type:
        try:
            event_type = VestingEventType(raw_type)
        except ValueError:
            raise RequestValidationError(
                f"Unknown event_type '{raw_type}'",
                [{"field": "event_type", "message": f"expected one of {[t.value for t in VestingEventType]}"}],
            )
    org_id = request.args.get("org_id")
    limit = min(parse_int_arg("limit", default=100, minimum=1), MAX_EVENT_PAGE)

    events = get_vesting_service().events.events(
        org_id=org_id.lower() if org_id else None,
        event_type=event_type,
        limit=limit,
    )
    return success_response({"events": [event.to_dict() for event in events], "count": len(events)})
