"""Error types raised by patreon_connect.

Every failure is surfaced as a subclass of :class:`PatreonError`:

- ``NetworkError``: the request never produced an HTTP response
  (DNS failure, connection refused, timeout).
- ``AuthError``: the token endpoint answered with a non-success status.
- ``DecodeError``: a response or webhook body did not have the expected shape.
- ``SignatureInvalid``: a webhook signature did not match its body.

Classifying an unrecognized webhook event type is not an error.
"""

from __future__ import annotations

from typing import Any


class PatreonError(Exception):
    """Base class for patreon_connect errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class NetworkError(PatreonError):
    """Transport-level failure talking to Patreon."""


class AuthError(PatreonError):
    """Non-success HTTP status from the token endpoint.

    ``body`` is the provider's response text, unmodified.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        error_code: str | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.body = body
        self.description = description


class DecodeError(PatreonError):
    """Payload could not be decoded into the expected shape."""


class SignatureInvalid(PatreonError):
    """Webhook signature did not match the request body."""

    def __init__(self, message: str = "Webhook signature validation failed"):
        super().__init__(message, error_code="signature_invalid")


__all__ = [
    "PatreonError",
    "NetworkError",
    "AuthError",
    "DecodeError",
    "SignatureInvalid",
]
