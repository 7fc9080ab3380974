"""Domain model entities for budgetwatch.

These are pure data classes representing alerting concepts, independent of
database schema. The repository layer maps its rows onto them, so the
idempotency and precedence logic never sees ORM objects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional, Union


class Severity(StrEnum):
    """Urgency tier of a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ACTION = "action"


class NotificationStatus(StrEnum):
    """Lifecycle status of a notification."""

    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"


class TimeWindow(StrEnum):
    """Granularity at which a recurring condition counts as the same alert."""

    MONTH = "month"
    DAY = "day"
    NONE = "none"


class EventType(StrEnum):
    """Known notification event types produced by the rule evaluator."""

    PAYMENT_DELAYED = "PAYMENT_DELAYED"
    MONTH_AT_RISK = "MONTH_AT_RISK"
    MONTH_AT_RISK_PREVIEW = "MONTH_AT_RISK_PREVIEW"
    UPCOMING_EXPENSE_COVERAGE_RISK = "UPCOMING_EXPENSE_COVERAGE_RISK"
    RECURRING_LATE_PAYMENT = "RECURRING_LATE_PAYMENT"
    MISSING_RECURRING_EXPENSE = "MISSING_RECURRING_EXPENSE"
    RISK_REDUCED = "RISK_REDUCED"
    MONTH_RECOVERED = "MONTH_RECOVERED"


class BalanceState(StrEnum):
    """Sign of the projected month-end balance."""

    NEGATIVE = "NEGATIVE"
    NON_NEGATIVE = "NON_NEGATIVE"


@dataclass(frozen=True)
class Notification:
    """Stored notification domain entity."""

    id: int
    tenant_id: str
    event_type: str
    entity_type: str
    entity_id: Optional[str]
    reference_id: Optional[str]
    dedupe_key: str
    severity: Severity
    message_key: str
    params: dict[str, Any]
    cta_label_key: Optional[str]
    cta_target: Optional[str]
    status: NotificationStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        """True while the notification has not been dismissed."""
        return self.dismissed_at is None


@dataclass(frozen=True)
class NotificationPayload:
    """Content of a Create or Update action."""

    event_type: str
    message_key: str
    severity: Severity
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    reference_id: Optional[str] = None
    params: dict[str, Any] = field(default_factory=dict)
    cta_label_key: Optional[str] = None
    cta_target: Optional[str] = None
    time_window: TimeWindow = TimeWindow.MONTH


@dataclass(frozen=True)
class CreateAction:
    """Ask for a notification to exist for the payload's condition."""

    payload: NotificationPayload


@dataclass(frozen=True)
class UpdateAction:
    """Refresh the open notification for the payload's condition, if any."""

    payload: NotificationPayload


@dataclass(frozen=True)
class ArchiveAction:
    """Close every open notification matching event type and reference id."""

    event_type: str
    reference_id: str


@dataclass(frozen=True)
class SkipAction:
    """Explicit no-op."""


Action = Union[CreateAction, UpdateAction, ArchiveAction, SkipAction]


@dataclass(frozen=True)
class NotificationSummary:
    """Unread counters over the notifications a user actually sees."""

    unread_count: int
    action_count: int
    warning_count: int
    info_count: int
    highest_severity: Optional[Severity]
    dominant_count: int
