"""Tests for the patreon CLI."""

import io
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from rich.console import Console

from patreon_connect.cli import app
from patreon_connect.errors import AuthError, NetworkError
from patreon_connect.oauth.tokens import OAuthToken
from patreon_connect.webhooks.signature import compute_signature
from tests.conftest import MOCK_MEMBER_EVENT, SAMPLE_CLIENT_ID, SAMPLE_WEBHOOK_SECRET

SAMPLE_TOKEN = OAuthToken(
    access_token="cli_access",
    refresh_token="cli_refresh",
    expires_at=datetime(2024, 1, 15, 11, 0, 0, tzinfo=timezone.utc),
    scopes=frozenset({"identity"}),
)


class TestAuthUrlCommand:
    """Tests for 'patreon auth url'."""

    def test_default_scopes(self, cli_runner, patreon_env):
        result = cli_runner.invoke(app, ["auth", "url"])

        assert result.exit_code == 0
        url = result.stdout.strip()
        params = parse_qs(urlparse(url).query)
        assert params["client_id"] == [SAMPLE_CLIENT_ID]
        assert params["scope"] == ["identity identity[email] identity.memberships"]

    def test_custom_scopes_and_state(self, cli_runner, patreon_env):
        result = cli_runner.invoke(
            app, ["auth", "url", "--scope", "campaigns", "--scope", "campaigns.posts", "--state", "abc"]
        )

        assert result.exit_code == 0
        params = parse_qs(urlparse(result.stdout.strip()).query)
        assert params["scope"] == ["campaigns campaigns.posts"]
        assert params["state"] == ["abc"]

    def test_not_configured(self, cli_runner, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("PATREON_CLIENT_ID", "PATREON_CLIENT_SECRET"):
            monkeypatch.delenv(name, raising=False)

        result = cli_runner.invoke(app, ["auth", "url"])

        assert result.exit_code == 1
        assert "not configured" in result.output

    def test_reads_dotenv_file(self, cli_runner, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("PATREON_CLIENT_ID", "PATREON_CLIENT_SECRET", "PATREON_REDIRECT_URI"):
            monkeypatch.delenv(name, raising=False)
        (tmp_path / ".env").write_text(
            "PATREON_CLIENT_ID=dotenv_client\nPATREON_CLIENT_SECRET=dotenv_secret\n"
        )

        result = cli_runner.invoke(app, ["auth", "url"])

        assert result.exit_code == 0
        assert "client_id=dotenv_client" in result.stdout


class TestAuthExchangeCommand:
    """Tests for 'patreon auth exchange'."""

    def test_success_prints_token_json(self, cli_runner, patreon_env):
        with patch("patreon_connect.cli.OAuthClient.exchange_code", new=AsyncMock(return_value=SAMPLE_TOKEN)) as mock_exchange:
            result = cli_runner.invoke(app, ["auth", "exchange", "code_123"])

        assert result.exit_code == 0
        mock_exchange.assert_awaited_once_with("code_123")
        assert '"access_token": "cli_access"' in result.output
        assert '"expires_at": "2024-01-15T11:00:00+00:00"' in result.output

    def test_auth_error(self, cli_runner, patreon_env):
        error = AuthError(
            "Token request failed: 400 invalid_grant",
            status_code=400,
            body='{"error": "invalid_grant"}',
            error_code="invalid_grant",
        )
        with patch("patreon_connect.cli.OAuthClient.exchange_code", new=AsyncMock(side_effect=error)):
            result = cli_runner.invoke(app, ["auth", "exchange", "bad_code"])

        assert result.exit_code == 1
        assert "invalid_grant" in result.output


class TestAuthRefreshCommand:
    """Tests for 'patreon auth refresh'."""

    def test_success(self, cli_runner, patreon_env):
        with patch("patreon_connect.cli.OAuthClient.refresh_token", new=AsyncMock(return_value=SAMPLE_TOKEN)) as mock_refresh:
            result = cli_runner.invoke(app, ["auth", "refresh", "old_refresh"])

        assert result.exit_code == 0
        mock_refresh.assert_awaited_once_with("old_refresh")
        assert '"refresh_token": "cli_refresh"' in result.output

    def test_network_error(self, cli_runner, patreon_env):
        error = NetworkError("Token request failed: Connection refused", error_code="ConnectError")
        with patch("patreon_connect.cli.OAuthClient.refresh_token", new=AsyncMock(side_effect=error)):
            result = cli_runner.invoke(app, ["auth", "refresh", "old_refresh"])

        assert result.exit_code == 1
        assert "Connection refused" in result.output


class TestAuthLoginCommand:
    """Tests for 'patreon auth login'."""

    def test_runs_flow(self, cli_runner, patreon_env):
        with patch("patreon_connect.cli.run_oauth_flow", new=AsyncMock(return_value=SAMPLE_TOKEN)) as mock_flow:
            result = cli_runner.invoke(app, ["auth", "login", "--no-browser", "--timeout", "5"])

        assert result.exit_code == 0
        kwargs = mock_flow.await_args.kwargs
        assert kwargs["open_browser"] is False
        assert kwargs["timeout"] == 5.0
        assert '"access_token": "cli_access"' in result.output

    def test_timeout(self, cli_runner, patreon_env):
        error = TimeoutError("No OAuth callback received within 5 seconds")
        with patch("patreon_connect.cli.run_oauth_flow", new=AsyncMock(side_effect=error)):
            result = cli_runner.invoke(app, ["auth", "login", "--no-browser"])

        assert result.exit_code == 1
        assert "No OAuth callback" in result.output


class TestWebhookCommands:
    """Tests for 'patreon webhook' commands."""

    def test_sign(self, cli_runner, patreon_env):
        body_file = patreon_env / "body.json"
        body_file.write_bytes(b'{"data": {}}')

        result = cli_runner.invoke(app, ["webhook", "sign", str(body_file)])

        assert result.exit_code == 0
        assert result.stdout.strip() == compute_signature(SAMPLE_WEBHOOK_SECRET, b'{"data": {}}')

    def test_verify_valid(self, cli_runner, patreon_env):
        body = json.dumps(MOCK_MEMBER_EVENT).encode()
        body_file = patreon_env / "body.json"
        body_file.write_bytes(body)
        signature = compute_signature(SAMPLE_WEBHOOK_SECRET, body)

        result = cli_runner.invoke(
            app,
            ["webhook", "verify", str(body_file), "--signature", signature, "--event", "members:pledge:create"],
        )

        assert result.exit_code == 0
        assert "MEMBERS_PLEDGE_CREATE" in result.output
        assert "member_123" in result.output

    def test_verify_unknown_event(self, cli_runner, patreon_env):
        body = b'{"data": {"id": "9"}}'
        body_file = patreon_env / "body.json"
        body_file.write_bytes(body)
        signature = compute_signature(SAMPLE_WEBHOOK_SECRET, body)

        result = cli_runner.invoke(
            app, ["webhook", "verify", str(body_file), "--signature", signature, "--event", "brand:new"]
        )

        assert result.exit_code == 0
        assert "UNKNOWN" in result.output

    def test_verify_invalid_signature(self, cli_runner, patreon_env):
        body_file = patreon_env / "body.json"
        body_file.write_bytes(b'{"data": {}}')

        result = cli_runner.invoke(app, ["webhook", "verify", str(body_file), "--signature", "0" * 64])

        assert result.exit_code == 1
        assert "signature" in result.output.lower()

    def test_secret_option_overrides_env(self, cli_runner, patreon_env):
        body_file = patreon_env / "body.json"
        body_file.write_bytes(b"payload")

        result = cli_runner.invoke(app, ["webhook", "sign", str(body_file), "--secret", "other"])

        assert result.stdout.strip() == compute_signature("other", b"payload")

    def test_missing_secret(self, cli_runner, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PATREON_WEBHOOK_SECRET", raising=False)
        body_file = tmp_path / "body.json"
        body_file.write_bytes(b"payload")

        result = cli_runner.invoke(app, ["webhook", "sign", str(body_file)])

        assert result.exit_code == 1
        assert "no webhook secret" in result.output


def test_version(cli_runner):
    result = cli_runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "Patreon Connect v" in result.output


class TestErrorOutput:
    """Errors go to stderr so stdout only ever carries command output."""

    @pytest.fixture
    def captured_stderr(self):
        buffer = io.StringIO()
        with patch("patreon_connect.cli.err_console", Console(file=buffer, width=200)):
            yield buffer

    def test_auth_error_not_on_stdout(self, cli_runner, patreon_env, captured_stderr):
        error = AuthError("Token request failed: 400 invalid_grant", status_code=400, body="rejected_body")
        with patch("patreon_connect.cli.OAuthClient.exchange_code", new=AsyncMock(side_effect=error)):
            result = cli_runner.invoke(app, ["auth", "exchange", "bad_code"])

        assert result.exit_code == 1
        assert "invalid_grant" in captured_stderr.getvalue()
        assert "rejected_body" in captured_stderr.getvalue()
        assert "invalid_grant" not in result.output

    def test_not_configured_not_on_stdout(self, cli_runner, monkeypatch, tmp_path, captured_stderr):
        monkeypatch.chdir(tmp_path)
        for name in ("PATREON_CLIENT_ID", "PATREON_CLIENT_SECRET"):
            monkeypatch.delenv(name, raising=False)

        result = cli_runner.invoke(app, ["auth", "url"])

        assert result.exit_code == 1
        assert "not configured" in captured_stderr.getvalue()
        assert result.output == ""

    def test_token_json_alone_on_stdout(self, cli_runner, patreon_env, captured_stderr):
        with patch("patreon_connect.cli.OAuthClient.refresh_token", new=AsyncMock(return_value=SAMPLE_TOKEN)):
            result = cli_runner.invoke(app, ["auth", "refresh", "old_refresh"])

        assert result.exit_code == 0
        assert json.loads(result.output)["access_token"] == "cli_access"
        assert "OAuth Token" in captured_stderr.getvalue()
