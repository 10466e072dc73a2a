"""OAuth 2.0 client for Patreon.

Handles the OAuth Authorization Code flow:
1. Generate authorization URL
2. Exchange the callback's authorization code for access + refresh tokens
3. Refresh tokens before they expire

Each call makes exactly one request and never retries: Patreon refresh tokens
are single-use, so whether a failed refresh may be repeated is the caller's
decision.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Iterable
from urllib.parse import urlencode

import httpx

from ..config import OAuthConfig, PatreonSettings
from ..errors import AuthError, DecodeError, NetworkError
from .tokens import OAuthToken, Scope, scope_value

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def generate_state() -> str:
    """Generate a random state value for CSRF protection."""
    return secrets.token_urlsafe(32)


def verify_state(expected: str | None, received: str | None) -> bool:
    """Check the callback's state against the one sent in the authorization URL."""
    if not expected or not received:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def _join_scopes(scopes: Iterable[Scope | str]) -> str:
    values = [scope_value(s) for s in scopes]
    if isinstance(scopes, (set, frozenset)):
        values.sort()
    return " ".join(dict.fromkeys(values))


class OAuthClient:
    """OAuth 2.0 client for Patreon.

    Usage:
        client = OAuthClient(
            OAuthConfig(
                client_id="your_client_id",
                client_secret="your_client_secret",
                redirect_uri="https://your-app.example/callback",
            )
        )

        # Send the user to the authorization URL
        state = generate_state()
        auth_url = client.authorization_url([Scope.IDENTITY, Scope.IDENTITY_EMAIL], state=state)

        # Patreon redirects to redirect_uri with ?code=xxx&state=xxx
        token = await client.exchange_code(code)

        # Later, before it expires
        if token.is_expiring_soon():
            token = await client.refresh_token(token.refresh_token)

    The client keeps no per-user state and can be shared between tasks. Pass
    ``http_client`` to reuse a pooled ``httpx.AsyncClient``; it is never closed
    here. Without one, a short-lived client with ``timeout`` is used per call.
    """

    def __init__(
        self,
        config: OAuthConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.config = config
        self._http_client = http_client
        self._timeout = timeout

    @classmethod
    def from_settings(
        cls,
        settings: PatreonSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> "OAuthClient":
        """Create a client from loaded settings."""
        return cls(
            settings.oauth_config(),
            http_client=http_client,
            timeout=settings.http_timeout_seconds,
        )

    def authorization_url(
        self,
        scopes: Iterable[Scope | str] = (),
        state: str | None = None,
    ) -> str:
        """Build the URL the user visits to grant access.

        Args:
            scopes: Scopes to request (duplicates are dropped)
            state: CSRF protection token, see :func:`generate_state`

        Returns:
            Authorization URL
        """
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": _join_scopes(scopes),
        }
        if state:
            params["state"] = state

        return f"{self.config.resolved_authorize_url}?{urlencode(params)}"

    async def exchange_code(
        self,
        code: str,
        scopes: Iterable[Scope | str] | None = None,
    ) -> OAuthToken:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback
            scopes: Scopes that were requested; used if the response omits ``scope``

        Raises:
            NetworkError: If the token endpoint could not be reached
            AuthError: If Patreon rejects the code
            DecodeError: If the response is not a valid token payload
        """
        token = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "redirect_uri": self.config.redirect_uri,
            },
            requested_scopes=scopes,
        )
        logger.info("Exchanged authorization code for tokens (expires %s)", token.expires_at.isoformat())
        return token

    async def refresh_token(self, refresh_token: str) -> OAuthToken:
        """Trade a refresh token for a new access/refresh pair.

        The refresh token is consumed: discard the old pair and keep only the
        returned token.

        Raises:
            NetworkError: If the token endpoint could not be reached
            AuthError: If Patreon rejects the refresh token (e.g. already used)
            DecodeError: If the response is not a valid token payload
        """
        token = await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            },
        )
        logger.info("Refreshed OAuth token (expires %s)", token.expires_at.isoformat())
        return token

    async def _token_request(
        self,
        form: dict[str, str],
        requested_scopes: Iterable[Scope | str] | None = None,
    ) -> OAuthToken:
        grant_type = form["grant_type"]
        requested_at = datetime.now(timezone.utc)

        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, form)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await self._post(client, form)
        except httpx.TransportError as e:
            logger.warning("Token request (%s) failed: %s", grant_type, e)
            raise NetworkError(
                f"Token request failed: {e}",
                error_code=type(e).__name__,
                details={"grant_type": grant_type},
            ) from e

        if not 200 <= response.status_code < 300:
            raise self._auth_error(response, grant_type)

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(
                "Invalid token response: body is not JSON",
                error_code="invalid_response",
                details={"grant_type": grant_type, "raw_response": response.text[:500]},
            ) from e

        return OAuthToken.from_token_response(payload, requested_at, requested_scopes)

    async def _post(self, client: httpx.AsyncClient, form: dict[str, str]) -> httpx.Response:
        return await client.post(
            self.config.resolved_token_url,
            data=form,
            headers={"Accept": "application/json"},
        )

    @staticmethod
    def _auth_error(response: httpx.Response, grant_type: str) -> AuthError:
        body = response.text
        try:
            parsed = response.json() if response.content else {}
        except ValueError:
            parsed = {"raw_response": body[:500]}
        error_data: dict[str, Any] = parsed if isinstance(parsed, dict) else {"raw_response": body[:500]}

        error_code = error_data.get("error")
        description = error_data.get("error_description")
        logger.warning(
            "Token request (%s) rejected: %s %s",
            grant_type,
            response.status_code,
            error_code or "",
        )
        return AuthError(
            f"Token request failed: {response.status_code}"
            + (f" {error_code}" if error_code else "")
            + (f" - {description}" if description else ""),
            status_code=response.status_code,
            body=body,
            error_code=error_code if isinstance(error_code, str) else None,
            description=description if isinstance(description, str) else None,
            details={"grant_type": grant_type, **error_data},
        )


__all__ = ["OAuthClient", "generate_state", "verify_state", "DEFAULT_TIMEOUT"]
