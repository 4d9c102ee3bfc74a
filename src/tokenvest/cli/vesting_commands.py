#!/usr/bin/env python3
"""
tokenvest Vesting CLI Commands

Provides CLI equivalents for the vesting API endpoints:
- Organization registration
- Stakeholder deposits and whitelist toggles
- Claims and schedule queries
- Notification feed
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import click
import requests
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tokenvest.core.config import Config

logger = logging.getLogger(__name__)
console = Console()

API_PREFIX = "/api/v1/vesting"


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _format_timestamp(value: Any) -> str:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError, OverflowError, OSError):
        return str(value)


class VestingClient:
    """Client for vesting API operations."""

    def __init__(self, node_url: str, timeout: float = 30.0):
        self.node_url = node_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, **kwargs) -> dict[str, Any]:
        """Make HTTP request to a vesting endpoint."""
        url = f"{self.node_url}/{endpoint.lstrip('/')}"
        logger.debug("Vesting request: %s %s", method, url)
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error("Vesting API unreachable: %s", e)
            raise click.ClickException(f"Vesting API error: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload, dict) else None
            code = payload.get("code") if isinstance(payload, dict) else None
            logger.debug("Vesting response: status=%d code=%s", response.status_code, code)
            if message:
                raise click.ClickException(f"{message} ({code})")
            raise click.ClickException(f"Vesting API error: HTTP {response.status_code}")

        logger.debug("Vesting response: status=%d", response.status_code)
        return payload

    def register(self, caller: str, name: str, token_reference: str) -> dict[str, Any]:
        return self._request(
            "POST",
            f"{API_PREFIX}/organizations",
            json={"caller": caller, "name": name, "token_reference": token_reference},
        )

    def add_stakeholder(
        self,
        caller: str,
        org_id: str,
        stakeholder: str,
        total_amount: int,
        start_time: int,
        duration: int,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            f"{API_PREFIX}/organizations/{org_id}/stakeholders",
            json={
                "caller": caller,
                "stakeholder": stakeholder,
                "total_amount": total_amount,
                "start_time": start_time,
                "duration": duration,
            },
        )

    def whitelist(self, caller: str, org_id: str, stakeholder: str) -> dict[str, Any]:
        return self._request(
            "POST",
            f"{API_PREFIX}/organizations/{org_id}/whitelist",
            json={"caller": caller, "stakeholder": stakeholder},
        )

    def unwhitelist(self, caller: str, org_id: str, stakeholder: str) -> dict[str, Any]:
        return self._request(
            "DELETE",
            f"{API_PREFIX}/organizations/{org_id}/whitelist/{stakeholder}",
            json={"caller": caller},
        )

    def claim(self, caller: str, org_id: str) -> dict[str, Any]:
        return self._request(
            "POST", f"{API_PREFIX}/organizations/{org_id}/claims", json={"caller": caller}
        )

    def get_schedule(self, org_id: str, stakeholder: str, at: int | None = None) -> dict[str, Any]:
        params = {"at": at} if at is not None else None
        return self._request(
            "GET", f"{API_PREFIX}/organizations/{org_id}/stakeholders/{stakeholder}", params=params
        )

    def get_events(
        self,
        org_id: str | None = None,
        event_type: str | None = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit}
        if org_id:
            params["org_id"] = org_id
        if event_type:
            params["event_type"] = event_type
        return self._request("GET", f"{API_PREFIX}/events", params=params)


@click.group()
@click.option("--node-url", default=None, help="Vesting API base URL (defaults to TOKENVEST_NODE_URL)")
@click.option("--json", "json_output", is_flag=True, help="Print raw JSON responses")
@click.option("--timeout", default=30.0, type=float, show_default=True, help="Request timeout in seconds")
@click.pass_context
def vesting(ctx: click.Context, node_url: str | None, json_output: bool, timeout: float):
    """Organization token vesting commands."""
    ctx.ensure_object(dict)
    ctx.obj["client"] = VestingClient(node_url or Config.NODE_URL, timeout=timeout)
    ctx.obj["json_output"] = json_output


def _emit_json(ctx: click.Context, data: dict[str, Any]) -> bool:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(data, indent=2))
        return True
    return False


def _schedule_table(schedule: dict[str, Any]) -> Table:
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Total", str(schedule.get("total_amount", 0)))
    table.add_row("[bold green]Claimed", str(schedule.get("claimed_amount", 0)))
    table.add_row("[bold yellow]Start", _format_timestamp(schedule.get("start_time")))
    table.add_row("[bold yellow]End", _format_timestamp(schedule.get("end_time")))
    table.add_row("[bold magenta]Duration", f"{schedule.get('duration', 0)}s")
    return table


@vesting.command("register")
@click.option("--caller", required=True, help="Address registering the organization (becomes admin)")
@click.option("--name", required=True, help="Organization display name")
@click.option("--token", "token_reference", required=True, help="Token ledger reference")
@click.pass_context
def register_organization(ctx: click.Context, caller: str, name: str, token_reference: str):
    """
    Register the caller as an organization.

    Example:
        tokenvest register --caller 0xadmin --name Acme --token ACME
    """
    client: VestingClient = ctx.obj["client"]
    try:
        data = client.register(caller, name, token_reference)
        if _emit_json(ctx, data):
            return

        organization = data.get("organization", {})
        table = Table(show_header=False, box=box.ROUNDED)
        table.add_row("[bold cyan]Organization", organization.get("org_id", caller))
        table.add_row("[bold cyan]Name", organization.get("name", name))
        table.add_row("[bold green]Token", organization.get("token_reference", token_reference))
        console.print(Panel(table, title="[bold green]Organization Registered", border_style="green"))
    except click.ClickException as exc:
        _handle_cli_error(exc)


@vesting.command("add-stakeholder")
@click.option("--caller", required=True, help="Organization admin address")
@click.option("--org", "org_id", required=True, help="Organization id")
@click.option("--stakeholder", required=True, help="Stakeholder address")
@click.option("--amount", "total_amount", required=True, type=click.IntRange(min=1), help="Total tokens to vest")
@click.option("--start", "start_time", required=True, type=click.IntRange(min=0), help="Vesting start (unix seconds)")
@click.option("--duration", required=True, type=click.IntRange(min=1), help="Vesting duration in seconds")
@click.pass_context
def add_stakeholder(
    ctx: click.Context,
    caller: str,
    org_id: str,
    stakeholder: str,
    total_amount: int,
    start_time: int,
    duration: int,
):
    """
    Deposit tokens into custody and create a stakeholder schedule.

    The admin must have approved the custody address for at least AMOUNT
    on the organization's token ledger.
    """
    client: VestingClient = ctx.obj["client"]
    try:
        with console.status("[bold cyan]Depositing into custody..."):
            data = client.add_stakeholder(caller, org_id, stakeholder, total_amount, start_time, duration)
        if _emit_json(ctx, data):
            return
        console.print(
            Panel(
                _schedule_table(data.get("schedule", {})),
                title=f"[bold green]Stakeholder {data.get('stakeholder', stakeholder)} added",
                border_style="green",
            )
        )
    except click.ClickException as exc:
        _handle_cli_error(exc)


@vesting.command("whitelist")
@click.option("--caller", required=True, help="Organization admin address")
@click.option("--org", "org_id", required=True, help="Organization id")
@click.option("--stakeholder", required=True, help="Stakeholder address")
@click.pass_context
def whitelist_address(ctx: click.Context, caller: str, org_id: str, stakeholder: str):
    """Re-enable claims for a stakeholder."""
    client: VestingClient = ctx.obj["client"]
    try:
        data = client.whitelist(caller, org_id, stakeholder)
        if _emit_json(ctx, data):
            return
        console.print(f"[green]Whitelisted[/] {data.get('stakeholder', stakeholder)} for {data.get('org_id', org_id)}")
    except click.ClickException as exc:
        _handle_cli_error(exc)


@vesting.command("unwhitelist")
@click.option("--caller", required=True, help="Organization admin address")
@click.option("--org", "org_id", required=True, help="Organization id")
@click.option("--stakeholder", required=True, help="Stakeholder address")
@click.pass_context
def remove_whitelist_address(ctx: click.Context, caller: str, org_id: str, stakeholder: str):
    """Block claims for a stakeholder. The schedule is kept."""
    client: VestingClient = ctx.obj["client"]
    try:
        data = client.unwhitelist(caller, org_id, stakeholder)
        if _emit_json(ctx, data):
            return
        console.print(
            f"[yellow]Removed[/] {data.get('stakeholder', stakeholder)} from the whitelist of {data.get('org_id', org_id)}"
        )
    except click.ClickException as exc:
        _handle_cli_error(exc)


@vesting.command("claim")
@click.option("--caller", required=True, help="Stakeholder address claiming tokens")
@click.option("--org", "org_id", required=True, help="Organization id")
@click.pass_context
def claim_tokens(ctx: click.Context, caller: str, org_id: str):
    """Claim all vested, unclaimed tokens."""
    client: VestingClient = ctx.obj["client"]
    try:
        data = client.claim(caller, org_id)
        if _emit_json(ctx, data):
            return
        console.print(f"[bold green]Claimed {data.get('claimed', 0)} tokens[/]")
        schedule = data.get("schedule")
        if schedule:
            console.print(_schedule_table(schedule))
    except click.ClickException as exc:
        _handle_cli_error(exc)


@vesting.command("schedule")
@click.option("--org", "org_id", required=True, help="Organization id")
@click.option("--stakeholder", required=True, help="Stakeholder address")
@click.option("--at", type=click.IntRange(min=0), default=None, help="Evaluate at this unix timestamp")
@click.pass_context
def show_schedule(ctx: click.Context, org_id: str, stakeholder: str, at: int | None):
    """Show a stakeholder's schedule with vested and claimable amounts."""
    client: VestingClient = ctx.obj["client"]
    try:
        data = client.get_schedule(org_id, stakeholder, at)
        if _emit_json(ctx, data):
            return

        table = _schedule_table(data.get("schedule", {}))
        table.add_row("[bold cyan]Whitelisted", "yes" if data.get("whitelisted") else "no")
        table.add_row("[bold cyan]As of", _format_timestamp(data.get("as_of")))
        table.add_row("[bold green]Vested", str(data.get("vested_amount", 0)))
        table.add_row("[bold green]Claimable", str(data.get("claimable_amount", 0)))
        console.print(
            Panel(table, title=f"[bold cyan]Vesting Schedule: {data.get('stakeholder', stakeholder)}", border_style="cyan")
        )
    except click.ClickException as exc:
        _handle_cli_error(exc)


@vesting.command("events")
@click.option("--org", "org_id", default=None, help="Only events for this organization")
@click.option("--type", "event_type", default=None, help="Only events of this type")
@click.option("--limit", default=20, type=click.IntRange(min=1, max=1000), help="Number of events to show")
@click.pass_context
def list_events(ctx: click.Context, org_id: str | None, event_type: str | None, limit: int):
    """Show the most recent vesting notifications."""
    client: VestingClient = ctx.obj["client"]
    try:
        data = client.get_events(org_id, event_type, limit)
        if _emit_json(ctx, data):
            return

        events = data.get("events", [])
        if not events:
            console.print("[yellow]No events found[/]")
            return

        table = Table(title="Vesting Events", box=box.ROUNDED)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Time", style="cyan")
        table.add_column("Event", style="bold")
        table.add_column("Organization", style="magenta")
        table.add_column("Data")
        for event in events:
            table.add_row(
                str(event.get("sequence", "")),
                _format_timestamp(event.get("timestamp")),
                event.get("event", ""),
                event.get("org_id", ""),
                ", ".join(f"{key}={value}" for key, value in event.get("data", {}).items()),
            )
        console.print(table)
    except click.ClickException as exc:
        _handle_cli_error(exc)


if __name__ == "__main__":
    vesting()
