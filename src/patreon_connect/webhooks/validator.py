"""Webhook validation: verify the signature, then decode the event.

Usage:
    validator = WebhookValidator(settings.webhook_secret)

    # In your web framework's handler, with the raw (unparsed) body:
    event = validator.validate_request(await request.body(), request.headers)

    if event.event_type.kind is EventKind.MEMBERS_PLEDGE_CREATE:
        ...
"""

from __future__ import annotations

import logging
from typing import Mapping

from ..errors import SignatureInvalid
from .events import WebhookEvent, parse_event
from .signature import compute_signature, verify

logger = logging.getLogger(__name__)

# Webhook request headers
SIGNATURE_HEADER = "X-Patreon-Signature"
EVENT_HEADER = "X-Patreon-Event"


def validate_and_parse(
    secret: str | bytes,
    body: bytes,
    signature_hex: str,
    event_type_header: str,
) -> WebhookEvent:
    """Verify ``signature_hex`` and decode ``body``.

    The body is only decoded once the signature has been verified.

    Raises:
        SignatureInvalid: If the signature does not match the body
        DecodeError: If the verified body is not a valid webhook document
    """
    if not verify(secret, body, signature_hex):
        logger.warning("Rejected webhook with invalid signature (event=%r)", event_type_header)
        raise SignatureInvalid()
    return parse_event(body, event_type_header)


def parse_unverified(body: bytes, event_type_header: str) -> WebhookEvent:
    """Decode ``body`` without checking its signature.

    Only for callers that have already verified the request upstream.
    """
    logger.debug("Parsing webhook without signature verification")
    return parse_event(body, event_type_header)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class WebhookValidator:
    """Validates incoming webhook requests for one webhook secret.

    Holds nothing but the secret, so one instance can be shared freely.
    """

    def __init__(self, secret: str | bytes):
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)

    def __repr__(self) -> str:
        return "WebhookValidator(secret='***')"

    def compute_signature(self, body: bytes) -> str:
        return compute_signature(self._secret, body)

    def validate(self, body: bytes, signature: str) -> bool:
        return verify(self._secret, body, signature)

    def validate_or_error(self, body: bytes, signature: str) -> None:
        if not self.validate(body, signature):
            raise SignatureInvalid()

    def validate_and_parse(self, body: bytes, signature: str, event_type: str = "") -> WebhookEvent:
        return validate_and_parse(self._secret, body, signature, event_type)

    def parse_unverified(self, body: bytes, event_type: str = "") -> WebhookEvent:
        return parse_unverified(body, event_type)

    def validate_request(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """Validate using the ``X-Patreon-Signature``/``X-Patreon-Event`` headers.

        Header names are matched case-insensitively. A missing signature
        header is a :class:`SignatureInvalid`.
        """
        signature = _header(headers, SIGNATURE_HEADER)
        if signature is None:
            logger.warning("Rejected webhook without %s header", SIGNATURE_HEADER)
            raise SignatureInvalid(f"Missing {SIGNATURE_HEADER} header")
        event_type = _header(headers, EVENT_HEADER) or ""
        return self.validate_and_parse(body, signature, event_type)


__all__ = [
    "SIGNATURE_HEADER",
    "EVENT_HEADER",
    "WebhookValidator",
    "validate_and_parse",
    "parse_unverified",
]
