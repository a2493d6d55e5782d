"""
Helpers for reading Razorpay webhook envelopes.

Razorpay wraps every entity as ``payload[<kind>]["entity"]``. Some test
tools and older integrations send the entity directly as
``payload[<kind>]``; both shapes are accepted.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from typing import Any

from django.utils import timezone


def extract_entity(payload: dict[str, Any] | None, kind: str) -> dict[str, Any] | None:
    """
    Return the entity dict of the given kind from an event payload.

    Args:
        payload: The envelope's ``payload`` object
        kind: Entity kind ("payment", "order", "token", "invoice", ...)

    Returns:
        The entity, or None if the payload carries no such object
    """
    if not isinstance(payload, dict):
        return None
    wrapper = payload.get(kind)
    if not isinstance(wrapper, dict):
        return None
    entity = wrapper.get("entity")
    if isinstance(entity, dict):
        return entity
    return wrapper


def from_timestamp(value: Any) -> datetime | None:
    """Convert a Razorpay unix timestamp (seconds) to an aware datetime."""
    if value in (None, "", 0):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def to_timestamp(value: datetime | None) -> int | None:
    """Convert an aware datetime back to unix seconds."""
    if value is None:
        return None
    return int(value.timestamp())


def event_time(envelope: dict[str, Any] | None) -> datetime:
    """When the event happened according to the envelope, else now."""
    if isinstance(envelope, dict):
        occurred_at = from_timestamp(envelope.get("created_at"))
        if occurred_at is not None:
            return occurred_at
    return timezone.now()
