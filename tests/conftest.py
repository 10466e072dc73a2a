"""Shared test fixtures for patreon_connect test suite."""

import json
from typing import Any

import httpx
import pytest

from patreon_connect.config import OAuthConfig
from patreon_connect.oauth.client import OAuthClient
from patreon_connect.webhooks.signature import compute_signature

SAMPLE_CLIENT_ID = "client_test123"
SAMPLE_CLIENT_SECRET = "secret_test456"
SAMPLE_REDIRECT_URI = "https://app.example.com/oauth/callback"
SAMPLE_WEBHOOK_SECRET = "whsec_test789"
TOKEN_URL = "https://www.patreon.com/api/oauth2/token"


# ============================================================================
# Mock Response Data
# ============================================================================

MOCK_TOKEN_RESPONSE = {
    "access_token": "access_abc",
    "refresh_token": "refresh_def",
    "expires_in": 3600,
    "scope": "identity identity[email]",
    "token_type": "Bearer",
    "version": "0.0.1",
}

MOCK_MEMBER_EVENT = {
    "data": {
        "id": "member_123",
        "type": "member",
        "attributes": {
            "full_name": "Test Patron",
            "patron_status": "active_patron",
            "currently_entitled_amount_cents": 500,
        },
        "relationships": {
            "campaign": {"data": {"id": "campaign_1", "type": "campaign"}},
        },
    },
    "included": [
        {"id": "campaign_1", "type": "campaign", "attributes": {"vanity": "tester"}},
    ],
    "links": {"self": "https://www.patreon.com/api/oauth2/v2/members/member_123"},
}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def oauth_config():
    return OAuthConfig(
        client_id=SAMPLE_CLIENT_ID,
        client_secret=SAMPLE_CLIENT_SECRET,
        redirect_uri=SAMPLE_REDIRECT_URI,
    )


@pytest.fixture
def token_endpoint():
    """Factory for an httpx.MockTransport standing in for the token endpoint.

    Every request is recorded in ``transport.requests``.
    """

    def _create(handler=None, status_code: int = 200, payload: Any = None):
        requests: list[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if handler is not None:
                return handler(request)
            body = MOCK_TOKEN_RESPONSE if payload is None else payload
            return httpx.Response(status_code, json=body)

        transport = httpx.MockTransport(_handle)
        transport.requests = requests
        return transport

    return _create


@pytest.fixture
def make_oauth_client(oauth_config):
    """Build an OAuthClient whose HTTP traffic goes to a mock transport."""

    def _create(transport: httpx.MockTransport, config: OAuthConfig | None = None):
        http_client = httpx.AsyncClient(transport=transport)
        return OAuthClient(config or oauth_config, http_client=http_client)

    return _create


@pytest.fixture
def member_event_body():
    return json.dumps(MOCK_MEMBER_EVENT).encode("utf-8")


@pytest.fixture
def signed_member_event(member_event_body):
    """(body, signature) pair signed with SAMPLE_WEBHOOK_SECRET."""
    return member_event_body, compute_signature(SAMPLE_WEBHOOK_SECRET, member_event_body)


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def patreon_env(monkeypatch, tmp_path):
    """PATREON_* settings in the environment, run from an empty directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PATREON_CLIENT_ID", SAMPLE_CLIENT_ID)
    monkeypatch.setenv("PATREON_CLIENT_SECRET", SAMPLE_CLIENT_SECRET)
    monkeypatch.setenv("PATREON_REDIRECT_URI", SAMPLE_REDIRECT_URI)
    monkeypatch.setenv("PATREON_WEBHOOK_SECRET", SAMPLE_WEBHOOK_SECRET)
    return tmp_path
