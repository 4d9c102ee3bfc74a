"""
tokenvest HTTP API application.

Builds the Flask app around an ``OrganizationVestingService`` and runs it
with state persisted across restarts.
"""

from __future__ import annotations

import atexit
import logging
import os
from typing import Any

from flask import Flask, jsonify

from tokenvest.core.api_blueprints import register_blueprints
from tokenvest.core.config import Config
from tokenvest.core.token_ledger import InMemoryTokenLedger, LedgerDirectory
from tokenvest.core.vesting_metrics import VestingMetrics
from tokenvest.core.vesting_persistence import VestingStatePersistence
from tokenvest.core.vesting_service import OrganizationVestingService

logger = logging.getLogger(__name__)


def create_app(
    service: OrganizationVestingService,
    metrics: VestingMetrics | None = None,
    max_json_bytes: int | None = None,
) -> Flask:
    """
    Create the Flask app for ``service``.

    Args:
        service: Vesting service backing every endpoint
        metrics: Metrics exposed on /metrics; defaults to the service's own
        max_json_bytes: Request body limit (defaults to Config.API_MAX_JSON_BYTES)
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = max_json_bytes or Config.API_MAX_JSON_BYTES
    app.json.sort_keys = False

    if metrics is None and Config.METRICS_ENABLED:
        metrics = service.metrics
    register_blueprints(app, service, metrics)

    @app.errorhandler(404)
    def not_found(_error: Any):
        return jsonify({"success": False, "error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error: Any):
        return jsonify({"success": False, "error": "Method not allowed", "code": "method_not_allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(_error: Any):
        return jsonify({"success": False, "error": "Request body too large", "code": "payload_too_large"}), 413

    return app


def build_ledger_directory(
    token_references: list[str],
    custody_address: str,
    fundings: list[tuple[str, str, int]] | None = None,
) -> LedgerDirectory:
    """
    Create in-memory ledgers bound to the custody address for local runs.

    Each ``(token_reference, holder, amount)`` funding mints ``amount`` to
    ``holder`` and approves the custody address for it.
    """
    directory = LedgerDirectory()
    tokens: dict[str, InMemoryTokenLedger] = {}
    for reference in token_references:
        token = InMemoryTokenLedger(name=reference, symbol=reference.upper())
        tokens[reference.lower()] = token
        directory.register(reference, token.bind(custody_address))

    for reference, holder, amount in fundings or []:
        token = tokens.get(reference.lower())
        if token is None:
            raise ValueError(f"Cannot fund unknown token {reference!r}")
        token.mint(holder, holder, amount)
        token.approve(holder, custody_address, amount)
    return directory


def run_server(
    token_references: list[str],
    host: str | None = None,
    port: int | None = None,
    state_path: str | None = None,
    fundings: list[tuple[str, str, int]] | None = None,
) -> None:
    """Run the API with in-memory ledgers and JSON state persistence."""
    if not Config.USE_IN_MEMORY_LEDGER:
        raise RuntimeError(
            "run_server only wires in-memory ledgers; embed create_app() with real "
            "TokenLedger implementations in production."
        )

    persistence = VestingStatePersistence(state_path or Config.STATE_PATH)
    state = persistence.load_state()
    # Ledgers must be bound to the custody identity recorded in the snapshot
    custody_address = (state or {}).get("custody_address") or Config.CUSTODY_ADDRESS
    ledgers = build_ledger_directory(token_references, custody_address, fundings)
    service = persistence.load(ledgers, custody_address=custody_address)
    atexit.register(persistence.save, service)

    app = create_app(service)
    host = host or Config.API_HOST
    port = port or Config.API_PORT
    logger.info(
        "Starting vesting API on %s:%s",
        host,
        port,
        extra={"event": "api.starting", "ledgers": token_references, "pid": os.getpid()},
    )
    app.run(host=host, port=port)
