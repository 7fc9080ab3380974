"""Domain layer for budgetwatch application.

Services are imported from their modules (e.g. ``budgetwatch.domain.notification``)
rather than re-exported here, since they depend on ``budgetwatch.database.base``,
which in turn imports the entities below.
"""

from budgetwatch.domain.entities import (
    Action,
    ArchiveAction,
    BalanceState,
    CreateAction,
    EventType,
    Notification,
    NotificationPayload,
    NotificationStatus,
    Severity,
    SkipAction,
    TimeWindow,
    UpdateAction,
)

__all__ = [
    "Action",
    "ArchiveAction",
    "BalanceState",
    "CreateAction",
    "EventType",
    "Notification",
    "NotificationPayload",
    "NotificationStatus",
    "Severity",
    "SkipAction",
    "TimeWindow",
    "UpdateAction",
]
