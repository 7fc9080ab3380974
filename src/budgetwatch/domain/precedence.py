"""Read-time precedence rules for open notifications.

Overdue payments, a month at risk, upcoming expense coverage risk and
categories that usually pay late are all symptoms of the same cash-flow
problem. When several are open at once only the most actionable ones are
shown:

    PAYMENT_DELAYED > MONTH_AT_RISK (incl. preview) > UPCOMING_EXPENSE_COVERAGE_RISK
        > RECURRING_LATE_PAYMENT

Other event types are always shown.
"""

from enum import IntEnum
from typing import Iterable, Optional

from budgetwatch.domain.entities import EventType, Notification, NotificationSummary, Severity


class EventClass(IntEnum):
    """Precedence class of an event type, lower value wins."""

    OVERDUE = 1
    MONTH_AT_RISK = 2
    COVERAGE_RISK = 3
    RECURRING_LATE = 4
    OTHER = 99


_EVENT_CLASSES = {
    EventType.PAYMENT_DELAYED.value: EventClass.OVERDUE,
    EventType.MONTH_AT_RISK.value: EventClass.MONTH_AT_RISK,
    EventType.MONTH_AT_RISK_PREVIEW.value: EventClass.MONTH_AT_RISK,
    EventType.UPCOMING_EXPENSE_COVERAGE_RISK.value: EventClass.COVERAGE_RISK,
    EventType.RECURRING_LATE_PAYMENT.value: EventClass.RECURRING_LATE,
}


def classify(event_type: str) -> EventClass:
    """Return the precedence class for an event type."""
    return _EVENT_CLASSES.get(str(event_type), EventClass.OTHER)


def _overdue_entity_ids(overdue: Iterable[Notification]) -> set[str]:
    ids: set[str] = set()
    for notification in overdue:
        if notification.entity_id:
            ids.add(notification.entity_id)
        transaction_ids = notification.params.get("transaction_ids") or []
        if isinstance(transaction_ids, (list, tuple)):
            ids.update(str(tx_id) for tx_id in transaction_ids)
    return ids


def filter_by_precedence(notifications: Iterable[Notification]) -> list[Notification]:
    """Hide alerts subsumed by a higher-priority open alert.

    Args:
        notifications: Notifications to filter; archived ones are dropped

    Returns:
        Visible notifications in their original relative order
    """
    open_notifications = [n for n in notifications if n.is_open]
    classes = [classify(n.event_type) for n in open_notifications]

    has_overdue = EventClass.OVERDUE in classes
    has_month_at_risk = EventClass.MONTH_AT_RISK in classes
    has_coverage_risk = EventClass.COVERAGE_RISK in classes
    overdue_ids = _overdue_entity_ids(
        n for n, event_class in zip(open_notifications, classes) if event_class is EventClass.OVERDUE
    )

    visible = []
    for notification, event_class in zip(open_notifications, classes):
        if event_class is EventClass.COVERAGE_RISK:
            if has_overdue or has_month_at_risk:
                continue
            own_id = notification.entity_id or notification.reference_id
            if own_id and own_id in overdue_ids:
                continue
        elif event_class is EventClass.RECURRING_LATE:
            if has_overdue or has_month_at_risk or has_coverage_risk:
                continue
        visible.append(notification)
    return visible


def summarize(notifications: Iterable[Notification]) -> NotificationSummary:
    """Count unread visible notifications by severity.

    Precedence is applied first, so suppressed alerts never inflate counters.
    """
    unread = [n for n in filter_by_precedence(notifications) if n.read_at is None]
    action_count = sum(1 for n in unread if n.severity is Severity.ACTION)
    warning_count = sum(1 for n in unread if n.severity is Severity.WARNING)
    info_count = sum(1 for n in unread if n.severity in (Severity.INFO, Severity.SUCCESS))

    highest: Optional[Severity]
    if action_count:
        highest, dominant = Severity.ACTION, action_count
    elif warning_count:
        highest, dominant = Severity.WARNING, warning_count
    elif unread:
        highest, dominant = Severity.INFO, info_count
    else:
        highest, dominant = None, 0

    return NotificationSummary(
        unread_count=len(unread),
        action_count=action_count,
        warning_count=warning_count,
        info_count=info_count,
        highest_severity=highest,
        dominant_count=dominant,
    )
