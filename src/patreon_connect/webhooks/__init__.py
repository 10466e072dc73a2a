"""Patreon webhook verification and parsing.

Usage:
    from patreon_connect.webhooks import WebhookValidator, EventKind

    validator = WebhookValidator("webhook_secret")
    event = validator.validate_and_parse(body, signature_header, event_header)
"""

from .events import EventKind, EventType, WebhookEvent, classify, parse_event
from .signature import compute_signature, verify
from .validator import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    WebhookValidator,
    parse_unverified,
    validate_and_parse,
)

__all__ = [
    "EventKind",
    "EventType",
    "WebhookEvent",
    "classify",
    "parse_event",
    "compute_signature",
    "verify",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "WebhookValidator",
    "parse_unverified",
    "validate_and_parse",
]
