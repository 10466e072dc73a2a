"""OAuth scopes and the token value object."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

from ..errors import DecodeError

# Refresh this long before expiry so a token doesn't lapse mid-request
DEFAULT_EXPIRY_SKEW = timedelta(seconds=30)


class Scope(str, Enum):
    """Patreon OAuth scopes, as sent on the wire."""

    IDENTITY = "identity"
    IDENTITY_EMAIL = "identity[email]"
    IDENTITY_MEMBERSHIPS = "identity.memberships"
    CAMPAIGNS = "campaigns"
    CAMPAIGNS_MEMBERS = "campaigns.members"
    CAMPAIGNS_MEMBERS_EMAIL = "campaigns.members[email]"
    CAMPAIGNS_MEMBERS_ADDRESS = "campaigns.members.address"
    CAMPAIGNS_POSTS = "campaigns.posts"
    CAMPAIGNS_WEBHOOK = "w:campaigns.webhook"

    def __str__(self) -> str:
        return self.value


def scope_value(scope: Scope | str) -> str:
    return scope.value if isinstance(scope, Scope) else str(scope)


def split_scope(scope: str | None) -> frozenset[str]:
    """Split a space- or comma-separated scope string."""
    if not scope:
        return frozenset()
    return frozenset(part for part in scope.replace(",", " ").split() if part)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _required_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise DecodeError(
            f"Invalid token response: missing {key}",
            error_code="invalid_response",
            details={"missing_field": key, "response_keys": sorted(payload.keys())},
        )
    return value


def _expires_in(payload: Mapping[str, Any]) -> int:
    value = payload.get("expires_in")
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        value = int(value.strip())
    # bool is an int subclass; reject it along with missing/negative values
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise DecodeError(
            "Invalid token response: missing or invalid expires_in",
            error_code="invalid_response",
            details={"missing_field": "expires_in", "response_keys": sorted(payload.keys())},
        )
    return value


@dataclass(frozen=True)
class OAuthToken:
    """Access/refresh token pair with an absolute expiry.

    Tokens are never modified: refreshing produces a new ``OAuthToken`` and the
    old refresh token must be discarded.
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_at: datetime
    scopes: frozenset[str] = frozenset()
    token_type: str = "Bearer"

    def __post_init__(self) -> None:
        object.__setattr__(self, "expires_at", _as_utc(self.expires_at))
        object.__setattr__(self, "scopes", frozenset(self.scopes))

    @classmethod
    def from_token_response(
        cls,
        payload: Mapping[str, Any],
        received_at: datetime | None = None,
        requested_scopes: Iterable[Scope | str] | None = None,
    ) -> "OAuthToken":
        """Build a token from a token endpoint response body.

        ``expires_at`` is ``received_at`` plus the reported ``expires_in``.

        Raises:
            DecodeError: If access_token, refresh_token or expires_in is missing or invalid
        """
        if not isinstance(payload, Mapping):
            raise DecodeError(
                "Invalid token response: expected a JSON object",
                error_code="invalid_response",
            )

        access_token = _required_str(payload, "access_token")
        refresh_token = _required_str(payload, "refresh_token")
        expires_in = _expires_in(payload)

        scope = payload.get("scope")
        scopes = split_scope(scope) if isinstance(scope, str) else frozenset()
        if not scopes and requested_scopes:
            scopes = frozenset(scope_value(s) for s in requested_scopes)

        token_type = payload.get("token_type")
        received_at = _as_utc(received_at) if received_at else _utcnow()
        try:
            expires_at = received_at + timedelta(seconds=expires_in)
        except OverflowError as e:
            raise DecodeError(
                f"Invalid token response: expires_in out of range ({expires_in})",
                error_code="invalid_response",
                details={"expires_in": expires_in},
            ) from e

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=scopes,
            token_type=token_type if isinstance(token_type, str) and token_type else "Bearer",
        )

    @property
    def scope(self) -> str:
        """Scopes as a space-separated string (sorted)."""
        return " ".join(sorted(self.scopes))

    def has_scope(self, scope: Scope | str) -> bool:
        return scope_value(scope) in self.scopes

    def expires_in(self, now: datetime | None = None) -> timedelta:
        """Time left before expiry, never negative."""
        now = _as_utc(now) if now else _utcnow()
        return max(self.expires_at - now, timedelta(0))

    def is_expired(self, now: datetime | None = None) -> bool:
        now = _as_utc(now) if now else _utcnow()
        return now >= self.expires_at

    def is_expiring_soon(
        self,
        now: datetime | None = None,
        skew: timedelta = DEFAULT_EXPIRY_SKEW,
    ) -> bool:
        """True when ``expires_at - now <= skew``."""
        now = _as_utc(now) if now else _utcnow()
        return self.expires_at - now <= skew

    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.access_token}"}

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for caller-side storage."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
            "scopes": sorted(self.scopes),
            "token_type": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OAuthToken":
        """Rebuild a token saved with :meth:`to_dict`.

        Raises:
            DecodeError: If a required field is missing or ``expires_at`` is unparseable
        """
        try:
            expires_at = data["expires_at"]
            if isinstance(expires_at, (int, float)) and not isinstance(expires_at, bool):
                expires_at = datetime.fromtimestamp(expires_at, timezone.utc)
            elif isinstance(expires_at, str):
                expires_at = datetime.fromisoformat(expires_at)
            elif not isinstance(expires_at, datetime):
                raise TypeError(f"unsupported expires_at {expires_at!r}")

            scopes = data.get("scopes") or ()
            if isinstance(scopes, str):
                scopes = split_scope(scopes)
            elif not isinstance(scopes, (list, tuple, set, frozenset)):
                raise TypeError(f"unsupported scopes {scopes!r}")

            return cls(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_at=expires_at,
                scopes=frozenset(scopes),
                token_type=data.get("token_type") or "Bearer",
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise DecodeError(
                f"Invalid stored token: {e}",
                error_code="invalid_token_data",
                details={"keys": sorted(data.keys()) if isinstance(data, Mapping) else []},
            ) from e


__all__ = ["DEFAULT_EXPIRY_SKEW", "OAuthToken", "Scope", "split_scope"]
