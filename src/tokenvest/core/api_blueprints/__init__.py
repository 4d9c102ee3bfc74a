"""
tokenvest API Blueprints

Flask Blueprints for the vesting HTTP API.

Usage:
    from tokenvest.core.api_blueprints import register_blueprints
    register_blueprints(app, service, metrics)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import Flask, g

from tokenvest.core.api_blueprints.core_bp import core_bp
from tokenvest.core.api_blueprints.vesting_bp import vesting_bp

if TYPE_CHECKING:
    from tokenvest.core.vesting_metrics import VestingMetrics
    from tokenvest.core.vesting_service import OrganizationVestingService

__all__ = [
    "core_bp",
    "vesting_bp",
    "register_blueprints",
    "ALL_BLUEPRINTS",
]

logger = logging.getLogger(__name__)

ALL_BLUEPRINTS = [
    core_bp,
    vesting_bp,  # has url_prefix="/api/v1/vesting"
]


def register_blueprints(
    app: Flask,
    service: "OrganizationVestingService",
    metrics: "VestingMetrics" | None = None,
) -> None:
    """
    Register all API blueprints with the Flask app.

    Sets up a before_request handler that injects the service context into
    Flask's g object, then registers every blueprint.

    Args:
        app: Flask application instance
        service: OrganizationVestingService backing the API
        metrics: VestingMetrics exposed on /metrics (None disables it)
    """
    api_context = {
        "service": service,
        "metrics": metrics,
    }

    @app.before_request
    def inject_api_context() -> None:
        """Inject API context into Flask's g object for blueprint access."""
        g.api_context = api_context

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)
