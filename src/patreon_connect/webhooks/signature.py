"""HMAC-SHA256 webhook signatures.

Patreon signs every webhook with the per-webhook secret and sends the
lowercase hex digest of the raw body in ``X-Patreon-Signature``.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEX_LENGTH = hashlib.sha256().digest_size * 2
_HEX_DIGITS = frozenset("0123456789abcdef")


def _key(secret: str | bytes) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


def compute_signature(secret: str | bytes, body: bytes) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``body`` keyed by ``secret``."""
    return hmac.new(_key(secret), bytes(body), hashlib.sha256).hexdigest()


def _well_formed(signature_hex: object) -> bool:
    return (
        isinstance(signature_hex, str)
        and len(signature_hex) == SIGNATURE_HEX_LENGTH
        and all(ch in _HEX_DIGITS for ch in signature_hex)
    )


def verify(secret: str | bytes, body: bytes, signature_hex: str) -> bool:
    """Check ``signature_hex`` against the HMAC of ``body``.

    Returns False for any mismatch, including signatures that are not
    64 lowercase hex characters. Never raises on a malformed signature.
    """
    if not _well_formed(signature_hex):
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected, signature_hex)


__all__ = ["SIGNATURE_HEX_LENGTH", "compute_signature", "verify"]
