"""
Core API Blueprint

Service-level endpoints: index, health and Prometheus metrics.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Tuple

from flask import Blueprint, jsonify
from prometheus_client import CONTENT_TYPE_LATEST

from tokenvest import __version__
from tokenvest.core.api_blueprints.base import get_metrics, get_vesting_service

logger = logging.getLogger(__name__)

core_bp = Blueprint("core", __name__)


@core_bp.route("/", methods=["GET"])
def index() -> Tuple[Dict[str, Any], int]:
    """Service information."""
    return (
        jsonify(
            {
                "status": "online",
                "service": "tokenvest",
                "version": __version__,
                "api": "/api/v1/vesting",
            }
        ),
        200,
    )


@core_bp.route("/health", methods=["GET"])
def health_check() -> Tuple[Dict[str, Any], int]:
    """Health check endpoint for Docker and monitoring."""
    service = get_vesting_service()
    stats = service.stats()
    return (
        jsonify(
            {
                "status": "healthy",
                "timestamp": time.time(),
                "ledgers": service.ledgers.references(),
                **stats,
            }
        ),
        200,
    )


@core_bp.route("/metrics", methods=["GET"])
def prometheus_metrics() -> Tuple[Any, int, Dict[str, str]]:
    """Prometheus metrics endpoint."""
    metrics = get_metrics()
    if metrics is None:
        return "# metrics disabled\n", 404, {"Content-Type": "text/plain"}
    return metrics.render(), 200, {"Content-Type": CONTENT_TYPE_LATEST}
