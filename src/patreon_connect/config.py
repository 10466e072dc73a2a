"""Client configuration.

``OAuthConfig`` is the explicit credentials struct handed to
:class:`~patreon_connect.oauth.client.OAuthClient`. ``PatreonSettings`` loads
the same values (plus the webhook secret) from ``PATREON_*`` environment
variables or a ``.env`` file and is used by the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic_settings import BaseSettings

# Patreon endpoints
OAUTH_AUTHORIZE_URL = "https://www.patreon.com/oauth2/authorize"
OAUTH_TOKEN_URL = "https://www.patreon.com/api/oauth2/token"


@dataclass(frozen=True)
class OAuthConfig:
    """OAuth client credentials and optional endpoint overrides."""

    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    token_url: str | None = None
    authorize_url: str | None = None

    @property
    def resolved_token_url(self) -> str:
        return self.token_url or OAUTH_TOKEN_URL

    @property
    def resolved_authorize_url(self) -> str:
        return self.authorize_url or OAUTH_AUTHORIZE_URL


class PatreonSettings(BaseSettings):
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:8080/callback"
    webhook_secret: str = ""
    token_url: str | None = None
    authorize_url: str | None = None
    http_timeout_seconds: float = 30.0

    model_config = {"env_prefix": "PATREON_", "env_file": ".env", "extra": "ignore"}

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_secret)

    def oauth_config(self) -> OAuthConfig:
        return OAuthConfig(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            token_url=self.token_url,
            authorize_url=self.authorize_url,
        )
