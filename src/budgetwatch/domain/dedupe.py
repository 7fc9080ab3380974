"""Dedupe key builder.

A dedupe key names "this alert, about this thing, in this time window":

    {event_type}:{entity_type}:{entity_id}:{time_bucket}

where the time bucket is ``YYYY-MM`` for monthly alerts, ``YYYY-MM-DD`` for
daily ones and the literal ``always`` when the alert has no time window.
Every writer and reader derives keys through this module so the format
cannot drift between them.
"""

import re
from datetime import date, datetime
from typing import Optional

from budgetwatch.domain.entities import NotificationPayload, TimeWindow
from budgetwatch.domain.errors import ValidationError, invalid_month_key

DEFAULT_ENTITY_TYPE = "generic"
NO_TIME_WINDOW_BUCKET = "always"

_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _as_date(reference_date: Optional[date]) -> date:
    if reference_date is None:
        return date.today()
    if isinstance(reference_date, datetime):
        return reference_date.date()
    return reference_date


def month_key(value: date) -> str:
    """Return the ``YYYY-MM`` key of the month containing ``value``."""
    return value.replace(day=1).strftime("%Y-%m")


def parse_month_key(value: str) -> str:
    """Validate and normalise a ``YYYY-MM`` month key.

    Raises:
        ValidationError: If the value is not a valid month key
    """
    candidate = value.strip()
    if not _MONTH_KEY_RE.match(candidate):
        raise ValidationError(invalid_month_key(value))
    return candidate


def time_bucket(time_window: TimeWindow, reference_date: Optional[date] = None) -> str:
    """Return the time bucket component for a dedupe key.

    Args:
        time_window: Bucket granularity
        reference_date: Date inside the bucket (defaults to today)

    Returns:
        ``YYYY-MM``, ``YYYY-MM-DD`` or ``always``
    """
    time_window = TimeWindow(time_window)
    if time_window is TimeWindow.NONE:
        return NO_TIME_WINDOW_BUCKET

    day = _as_date(reference_date)
    if time_window is TimeWindow.DAY:
        return day.strftime("%Y-%m-%d")
    return month_key(day)


def build_dedupe_key(
    event_type: str,
    entity_type: Optional[str] = DEFAULT_ENTITY_TYPE,
    entity_id: Optional[str] = "",
    time_window: TimeWindow = TimeWindow.MONTH,
    reference_date: Optional[date] = None,
) -> str:
    """Build the canonical dedupe key.

    Args:
        event_type: Notification event type
        entity_type: Kind of entity the alert is about (defaults to "generic")
        entity_id: Entity identifier (defaults to empty string)
        time_window: Bucket granularity
        reference_date: Date used for the time bucket (defaults to today)

    Returns:
        Dedupe key string

    Examples:
        >>> build_dedupe_key("MONTH_AT_RISK", "month", "", TimeWindow.MONTH, date(2025, 1, 15))
        'MONTH_AT_RISK:month::2025-01'
    """
    entity_type = entity_type or DEFAULT_ENTITY_TYPE
    entity_id = entity_id or ""
    bucket = time_bucket(time_window, reference_date)
    return f"{event_type}:{entity_type}:{entity_id}:{bucket}"


def build_legacy_dedupe_key(event_type: str, reference_id: Optional[str] = None) -> str:
    """Build the legacy ``{event_type}:{reference_id}`` key.

    Only used to find rows written before canonical keys existed.
    """
    if reference_id:
        return f"{event_type}:{reference_id}"
    return event_type


def payload_dedupe_key(payload: NotificationPayload, reference_date: Optional[date] = None) -> str:
    """Derive the dedupe key for an action payload."""
    return build_dedupe_key(
        event_type=payload.event_type,
        entity_type=payload.entity_type,
        entity_id=payload.entity_id or payload.reference_id or "",
        time_window=payload.time_window,
        reference_date=reference_date,
    )
