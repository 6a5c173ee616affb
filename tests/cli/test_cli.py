"""Tests for the pairbot command line"""
import httpx
import pytest
from typer.testing import CliRunner

from pairbot.cli import main as cli_main

runner = CliRunner()


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


@pytest.fixture
def requests(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers))
        if url.endswith("/status"):
            return FakeResponse({"company": "IAN TECH", "version": "2.1.0", "status": "online", "pairingCodes": 2})
        return FakeResponse({
            "success": True,
            "count": 1,
            "codes": [{
                "displayCode": "A7JK-PC29",
                "phoneNumber": "+254723278526",
                "status": "pending",
                "createdAt": "2026-01-01T12:00:00+00:00",
                "expiresAt": "2026-01-01T12:10:00+00:00",
            }],
        })

    monkeypatch.setattr(cli_main.httpx, "get", fake_get)
    return calls


def test_status_command(requests):
    result = runner.invoke(cli_main.app, ["status", "--url", "http://pairbot.local:3000/"])

    assert result.exit_code == 0
    assert requests[0][0] == "http://pairbot.local:3000/status"
    assert "online" in result.output


def test_status_json(requests):
    result = runner.invoke(cli_main.app, ["status", "--url", "http://pairbot.local", "--json"])
    assert result.exit_code == 0
    assert '"pairingCodes": 2' in result.output


def test_codes_requires_api_key(requests, monkeypatch):
    monkeypatch.delenv("PAIRBOT_ADMIN_API_KEY", raising=False)
    monkeypatch.setattr(cli_main, "load_dotenv", lambda: None)

    result = runner.invoke(cli_main.app, ["codes", "--url", "http://pairbot.local"])

    assert result.exit_code == 1
    assert requests == []


def test_codes_command(requests, monkeypatch):
    monkeypatch.setattr(cli_main, "load_dotenv", lambda: None)
    result = runner.invoke(cli_main.app, ["codes", "--url", "http://pairbot.local", "--api-key", "s3cret"])

    assert result.exit_code == 0
    assert requests[0] == ("http://pairbot.local/admin/codes", {"X-API-Key": "s3cret"})
    assert "A7JK-PC29" in result.output


def test_http_error_exits_nonzero(monkeypatch):
    def failing_get(url, headers=None, timeout=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(cli_main.httpx, "get", failing_get)
    result = runner.invoke(cli_main.app, ["status", "--url", "http://pairbot.local"])

    assert result.exit_code == 1
    assert "connection refused" in result.output
