"""
Base utilities for API Blueprints

Provides common dependencies and helper functions shared across blueprints.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Type, TypeVar

from flask import g, jsonify, request
from pydantic import BaseModel, ValidationError as PydanticValidationError

from tokenvest.core.vesting_exceptions import VestingError, get_error_context

if TYPE_CHECKING:
    from tokenvest.core.vesting_metrics import VestingMetrics
    from tokenvest.core.vesting_service import OrganizationVestingService

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestValidationError(Exception):
    """Raised when a request body or query parameter is malformed."""

    def __init__(self, message: str, errors: Optional[list[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []


def get_api_context() -> Dict[str, Any]:
    """Get the API context stored in Flask's g object during request setup."""
    return g.get("api_context", {})


def get_vesting_service() -> "OrganizationVestingService":
    """Get the vesting service instance from context."""
    return get_api_context()["service"]


def get_metrics() -> Optional["VestingMetrics"]:
    """Get the metrics collector from context."""
    return get_api_context().get("metrics")


def success_response(payload: Dict[str, Any], status: int = 200) -> Tuple[Any, int]:
    """Return a success payload with consistent structure."""
    body = {"success": True, **payload}
    return jsonify(body), status


def error_response(
    message: str,
    status: int = 400,
    code: str = "bad_request",
    context: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, int]:
    """Return an error payload and log it."""
    log = logger.error if status >= 500 else logger.warning
    log(
        "API error: %s",
        code,
        extra={"event": "api.error", "code": code, "status": status, "path": request.path},
    )
    body: Dict[str, Any] = {"success": False, "error": message, "code": code}
    if context:
        body["details"] = context
    return jsonify(body), status


def vesting_error_response(exc: VestingError) -> Tuple[Any, int]:
    """Map a domain rejection onto its HTTP status and error code."""
    context = get_error_context(exc)
    return error_response(
        exc.message,
        status=exc.http_status,
        code=exc.code,
        context={"recoverable": context["recoverable"], **exc.details},
    )


def parse_body(model: Type[ModelT]) -> ModelT:
    """Validate the JSON body against ``model``."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise RequestValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise RequestValidationError("Invalid request body", errors) from exc


def parse_int_arg(name: str, default: Optional[int] = None, minimum: int = 0) -> Optional[int]:
    """Read an integer query parameter."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RequestValidationError(f"Query parameter '{name}' must be an integer") from exc
    if value < minimum:
        raise RequestValidationError(f"Query parameter '{name}' must be >= {minimum}")
    return value
