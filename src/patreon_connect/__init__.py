"""Patreon OAuth client and webhook verification."""

__version__ = "0.1.0"

from .config import OAuthConfig, PatreonSettings
from .errors import AuthError, DecodeError, NetworkError, PatreonError, SignatureInvalid
from .oauth import OAuthClient, OAuthToken, Scope, generate_state, verify_state
from .webhooks import EventKind, EventType, WebhookEvent, WebhookValidator

__all__ = [
    "__version__",
    "OAuthConfig",
    "PatreonSettings",
    "AuthError",
    "DecodeError",
    "NetworkError",
    "PatreonError",
    "SignatureInvalid",
    "OAuthClient",
    "OAuthToken",
    "Scope",
    "generate_state",
    "verify_state",
    "EventKind",
    "EventType",
    "WebhookEvent",
    "WebhookValidator",
]
