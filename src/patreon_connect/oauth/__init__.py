"""OAuth 2.0 Authorization Code flow for Patreon.

Usage:
    from patreon_connect.oauth import OAuthClient, Scope, generate_state

    client = OAuthClient(OAuthConfig(client_id, client_secret, redirect_uri))

    # Start OAuth flow
    state = generate_state()
    auth_url = client.authorization_url([Scope.IDENTITY, Scope.IDENTITY_MEMBERSHIPS], state=state)
    # User visits auth_url and grants permission

    # Exchange code for tokens
    token = await client.exchange_code(code)

    # Refresh before expiry; the old refresh token is spent afterwards
    if token.is_expiring_soon():
        token = await client.refresh_token(token.refresh_token)

Storing tokens is up to the caller (see ``OAuthToken.to_dict``).
"""

from .client import OAuthClient, generate_state, verify_state
from .server import CallbackResult, OAuthCallbackServer, run_oauth_flow
from .tokens import DEFAULT_EXPIRY_SKEW, OAuthToken, Scope

__all__ = [
    "OAuthClient",
    "generate_state",
    "verify_state",
    "CallbackResult",
    "OAuthCallbackServer",
    "run_oauth_flow",
    "DEFAULT_EXPIRY_SKEW",
    "OAuthToken",
    "Scope",
]
