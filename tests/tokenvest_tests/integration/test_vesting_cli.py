"""
CLI tests: click's CliRunner with requests mocked at the transport layer.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from click.testing import CliRunner

from tokenvest.cli.main import _parse_funding, cli
from tokenvest.cli.vesting_commands import VestingClient


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_request():
    with patch("tokenvest.cli.vesting_commands.requests.request") as mocked:
        yield mocked


def test_register_posts_body(runner, mock_request):
    mock_request.return_value = _response(
        201,
        {"success": True, "organization": {"org_id": "0xadmin", "name": "Acme", "token_reference": "ACME"}},
    )

    result = runner.invoke(
        cli,
        ["--node-url", "http://node:8645/", "register", "--caller", "0xadmin", "--name", "Acme", "--token", "ACME"],
        obj={},
    )

    assert result.exit_code == 0, result.output
    assert "Organization Registered" in result.output
    method, url = mock_request.call_args.args
    assert method == "POST"
    assert url == "http://node:8645/api/v1/vesting/organizations"
    assert mock_request.call_args.kwargs["json"] == {"caller": "0xadmin", "name": "Acme", "token_reference": "ACME"}


def test_add_stakeholder_sends_integers(runner, mock_request):
    mock_request.return_value = _response(
        201,
        {
            "success": True,
            "stakeholder": "0xalice",
            "schedule": {"total_amount": 1000, "claimed_amount": 0, "start_time": 0, "end_time": 100, "duration": 100},
        },
    )

    result = runner.invoke(
        cli,
        [
            "add-stakeholder",
            "--caller", "0xadmin",
            "--org", "0xadmin",
            "--stakeholder", "0xalice",
            "--amount", "1000",
            "--start", "0",
            "--duration", "100",
        ],
        obj={},
    )

    assert result.exit_code == 0, result.output
    body = mock_request.call_args.kwargs["json"]
    assert body["total_amount"] == 1000
    assert body["duration"] == 100
    assert mock_request.call_args.args[1].endswith("/organizations/0xadmin/stakeholders")


def test_add_stakeholder_rejects_zero_duration_locally(runner, mock_request):
    result = runner.invoke(
        cli,
        ["add-stakeholder", "--caller", "a", "--org", "a", "--stakeholder", "b", "--amount", "1", "--start", "0", "--duration", "0"],
        obj={},
    )

    assert result.exit_code == 2
    mock_request.assert_not_called()


def test_claim_json_output(runner, mock_request):
    payload = {"success": True, "claimed": 500, "schedule": {"claimed_amount": 500}}
    mock_request.return_value = _response(200, payload)

    result = runner.invoke(cli, ["--json", "claim", "--caller", "0xalice", "--org", "0xadmin"], obj={})

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == payload
    assert mock_request.call_args.kwargs["json"] == {"caller": "0xalice"}


def test_api_error_is_reported(runner, mock_request):
    mock_request.return_value = _response(
        409, {"success": False, "error": "No vested tokens available to claim.", "code": "nothing_to_claim"}
    )

    result = runner.invoke(cli, ["claim", "--caller", "0xalice", "--org", "0xadmin"], obj={})

    assert result.exit_code == 1
    assert "nothing_to_claim" in result.output


def test_unreachable_node(runner, mock_request):
    mock_request.side_effect = requests.exceptions.ConnectionError("refused")

    result = runner.invoke(cli, ["events"], obj={})

    assert result.exit_code == 1
    assert "Vesting API error" in result.output


def test_unwhitelist_uses_delete(runner, mock_request):
    mock_request.return_value = _response(200, {"success": True, "org_id": "0xadmin", "stakeholder": "0xalice"})

    result = runner.invoke(cli, ["unwhitelist", "--caller", "0xadmin", "--org", "0xadmin", "--stakeholder", "0xalice"], obj={})

    assert result.exit_code == 0, result.output
    method, url = mock_request.call_args.args
    assert method == "DELETE"
    assert url.endswith("/organizations/0xadmin/whitelist/0xalice")


def test_schedule_and_events_tables(runner, mock_request):
    mock_request.side_effect = [
        _response(
            200,
            {
                "success": True,
                "stakeholder": "0xalice",
                "schedule": {"total_amount": 1000, "claimed_amount": 0, "start_time": 0, "end_time": 100, "duration": 100},
                "whitelisted": True,
                "as_of": 50,
                "vested_amount": 500,
                "claimable_amount": 500,
            },
        ),
        _response(
            200,
            {
                "success": True,
                "events": [
                    {"event": "TokensClaimed", "org_id": "0xadmin", "data": {"amount": 5}, "timestamp": 1.0, "sequence": 3}
                ],
                "count": 1,
            },
        ),
    ]

    schedule = runner.invoke(cli, ["schedule", "--org", "0xadmin", "--stakeholder", "0xalice", "--at", "50"], obj={})
    events = runner.invoke(cli, ["events", "--org", "0xadmin", "--type", "TokensClaimed"], obj={})

    assert schedule.exit_code == 0, schedule.output
    assert "Claimable" in schedule.output
    assert mock_request.call_args_list[0].kwargs["params"] == {"at": 50}
    assert events.exit_code == 0, events.output
    assert "TokensClaimed" in events.output
    assert mock_request.call_args_list[1].kwargs["params"] == {
        "limit": 20,
        "org_id": "0xadmin",
        "event_type": "TokensClaimed",
    }


def test_client_handles_non_json_error():
    response = _response(502)
    response.json.side_effect = ValueError("no json")

    with patch("tokenvest.cli.vesting_commands.requests.request", return_value=response):
        with pytest.raises(Exception, match="HTTP 502"):
            VestingClient("http://node").get_events()


@pytest.mark.parametrize("value", ["ACME:0xadmin", "ACME:0xadmin:ten", "ACME::5", "ACME:0xadmin:0"])
def test_parse_funding_rejects_bad_values(value):
    with pytest.raises(Exception, match="--fund|amount|expected"):
        _parse_funding(value)


def test_parse_funding():
    assert _parse_funding("ACME:0xadmin:1000") == ("ACME", "0xadmin", 1000)


def test_serve_wires_run_server(runner, monkeypatch):
    calls = {}

    def fake_run_server(tokens, **kwargs):
        calls["tokens"] = tokens
        calls.update(kwargs)

    monkeypatch.setattr("tokenvest.core.vesting_api.run_server", fake_run_server)
    monkeypatch.setattr("tokenvest.cli.main.setup_logging", lambda **kwargs: None)

    result = runner.invoke(
        cli,
        ["serve", "--token", "ACME", "--fund", "ACME:0xadmin:500", "--port", "9001", "--state-path", "/tmp/s.json"],
        obj={},
    )

    assert result.exit_code == 0, result.output
    assert calls == {
        "tokens": ["ACME"],
        "host": None,
        "port": 9001,
        "state_path": "/tmp/s.json",
        "fundings": [("ACME", "0xadmin", 500)],
    }
