"""
Main CLI entry point for tokenvest.

Exposes the vesting commands as the ``tokenvest`` command group and adds
``serve`` for running the HTTP API locally against in-memory ledgers.
"""

from __future__ import annotations

import logging
import sys

import click
import requests

from tokenvest.cli.vesting_commands import _handle_cli_error, console, vesting as cli
from tokenvest.core.config import Config, ConfigurationError
from tokenvest.core.logging_config import setup_logging
from tokenvest.core.vesting_exceptions import VestingStateError

logger = logging.getLogger(__name__)


def _parse_funding(value: str) -> tuple[str, str, int]:
    """Parse ``TOKEN:HOLDER:AMOUNT``."""
    parts = value.split(":")
    if len(parts) != 3 or not parts[0] or not parts[1]:
        raise click.BadParameter(f"expected TOKEN:HOLDER:AMOUNT, got {value!r}", param_hint="--fund")
    try:
        amount = int(parts[2])
    except ValueError as exc:
        raise click.BadParameter(f"amount must be an integer in {value!r}", param_hint="--fund") from exc
    if amount <= 0:
        raise click.BadParameter(f"amount must be positive in {value!r}", param_hint="--fund")
    return parts[0], parts[1], amount


@cli.command("serve")
@click.option("--token", "tokens", multiple=True, required=True, help="Token reference to host (repeatable)")
@click.option(
    "--fund",
    "fundings",
    multiple=True,
    help="Mint AMOUNT of TOKEN to HOLDER and approve custody (TOKEN:HOLDER:AMOUNT, repeatable)",
)
@click.option("--host", default=None, help="Bind address (defaults to TOKENVEST_API_HOST)")
@click.option("--port", default=None, type=click.IntRange(1, 65535), help="Bind port (defaults to TOKENVEST_API_PORT)")
@click.option("--state-path", default=None, help="JSON state file (defaults to TOKENVEST_STATE_PATH)")
@click.option("--log-level", default=None, help="Logging level (defaults to TOKENVEST_LOG_LEVEL)")
def serve(
    tokens: tuple[str, ...],
    fundings: tuple[str, ...],
    host: str | None,
    port: int | None,
    state_path: str | None,
    log_level: str | None,
):
    """
    Run the vesting API with in-memory token ledgers.

    Example:
        tokenvest serve --token ACME --fund ACME:0xadmin:1000000
    """
    from tokenvest.core.vesting_api import run_server

    parsed = [_parse_funding(value) for value in fundings]
    setup_logging(
        name="tokenvest",
        log_file=Config.LOG_FILE or None,
        level=log_level or Config.LOG_LEVEL,
        environment=Config.ENVIRONMENT.value,
    )
    try:
        run_server(list(tokens), host=host, port=port, state_path=state_path, fundings=parsed)
    except (RuntimeError, ValueError, VestingStateError, ConfigurationError) as exc:
        _handle_cli_error(exc)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except requests.RequestException as exc:
        _handle_cli_error(exc)


if __name__ == "__main__":
    main()
