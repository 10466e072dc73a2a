"""Webhook event decoding and classification."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import DecodeError

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Known ``X-Patreon-Event`` values."""

    MEMBERS_CREATE = "members:create"
    MEMBERS_UPDATE = "members:update"
    MEMBERS_DELETE = "members:delete"
    MEMBERS_PLEDGE_CREATE = "members:pledge:create"
    MEMBERS_PLEDGE_UPDATE = "members:pledge:update"
    MEMBERS_PLEDGE_DELETE = "members:pledge:delete"
    POSTS_PUBLISH = "posts:publish"
    POSTS_UPDATE = "posts:update"
    POSTS_DELETE = "posts:delete"
    UNKNOWN = "unknown"


_KINDS_BY_TAG = {kind.value: kind for kind in EventKind if kind is not EventKind.UNKNOWN}


@dataclass(frozen=True)
class EventType:
    """Classified event tag. ``raw`` is the header value as received."""

    kind: EventKind
    raw: str

    @property
    def is_unknown(self) -> bool:
        return self.kind is EventKind.UNKNOWN

    @property
    def resource(self) -> str:
        """Part before the first colon, e.g. ``members``."""
        return self.raw.split(":", 1)[0]

    @property
    def action(self) -> str:
        """Part after the first colon, e.g. ``pledge:create``."""
        _, _, action = self.raw.partition(":")
        return action

    def __str__(self) -> str:
        return self.raw


def classify(event_type_header: str) -> EventType:
    """Map an ``X-Patreon-Event`` value to an :class:`EventType`.

    Unrecognized values map to ``EventKind.UNKNOWN`` with the raw string kept.
    """
    if not isinstance(event_type_header, str):
        return EventType(EventKind.UNKNOWN, "" if event_type_header is None else str(event_type_header))

    kind = _KINDS_BY_TAG.get(event_type_header)
    if kind is None:
        return EventType(EventKind.UNKNOWN, event_type_header)
    return EventType(kind, event_type_header)


@dataclass(frozen=True)
class WebhookEvent:
    """Decoded webhook envelope (JSON:API document)."""

    event_type: EventType
    data: Any
    included: list[Any] | None = None
    links: dict[str, Any] | None = None

    @property
    def resource_id(self) -> str | None:
        """``data.id`` when the primary data is a single resource object."""
        if isinstance(self.data, dict):
            value = self.data.get("id")
            return str(value) if value is not None else None
        return None


def parse_event(body: bytes, event_type_header: str = "") -> WebhookEvent:
    """Decode a webhook body into a :class:`WebhookEvent`.

    Raises:
        DecodeError: If the body is not a UTF-8 JSON object with a ``data`` field
    """
    try:
        document = json.loads(bytes(body).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise DecodeError(
            f"Webhook body is not valid JSON: {e}",
            error_code="invalid_json",
        ) from e

    if not isinstance(document, dict):
        raise DecodeError(
            "Webhook body must be a JSON object",
            error_code="invalid_shape",
            details={"type": type(document).__name__},
        )
    if "data" not in document:
        raise DecodeError(
            "Webhook body is missing the 'data' field",
            error_code="invalid_shape",
            details={"keys": sorted(document.keys())},
        )

    included = document.get("included")
    if included is not None and not isinstance(included, list):
        raise DecodeError("Webhook 'included' must be a list", error_code="invalid_shape")
    links = document.get("links")
    if links is not None and not isinstance(links, dict):
        raise DecodeError("Webhook 'links' must be an object", error_code="invalid_shape")

    event_type = classify(event_type_header)
    if event_type.is_unknown:
        logger.debug("Unrecognized webhook event type %r", event_type.raw)

    return WebhookEvent(
        event_type=event_type,
        data=document["data"],
        included=included,
        links=links,
    )


__all__ = ["EventKind", "EventType", "WebhookEvent", "classify", "parse_event"]
