"""Notification domain service.

Idempotency rules for creating a notification from a payload:

1. An OPEN notification with the same dedupe key exists: refresh it in place
   and mark it unread again, since the condition is still active.
2. Only an ARCHIVED notification exists: skip, unless the condition got
   strictly worse since it was dismissed (warning -> action), in which case
   a new row is created. The archived row is never touched.
3. Nothing exists: create.

Between the lookups and the insert another process may create the same
notification. The repository's unique index on open dedupe keys decides the
winner; the loser gets a DedupeConflictError, which is reported as a skip.
Refreshes only write rows that are still open, so a notification dismissed
by another session in the meantime stays archived and the payload is
decided again.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, UTC
from enum import StrEnum
from typing import Any, Optional

from budgetwatch.database.base import NotificationRepository
from budgetwatch.domain.dedupe import (
    build_dedupe_key,
    build_legacy_dedupe_key,
    payload_dedupe_key,
)
from budgetwatch.domain.entities import (
    Notification,
    NotificationPayload,
    NotificationStatus,
    Severity,
    TimeWindow,
)
from budgetwatch.domain.errors import DedupeConflictError, NotFoundError, notification_not_found
from budgetwatch.domain.precedence import filter_by_precedence
from budgetwatch.domain.sanitize import sanitize_params

logger = logging.getLogger(__name__)


class DecisionKind(StrEnum):
    """What the controller does with a candidate notification."""

    CREATE = "create"
    UPDATE_EXISTING = "update_existing"
    SKIP = "skip"
    ESCALATE_CREATE = "escalate_create"


@dataclass(frozen=True)
class Decision:
    """Controller decision for one payload."""

    kind: DecisionKind
    dedupe_key: str
    existing: Optional[Notification] = None

    @property
    def creates(self) -> bool:
        return self.kind in (DecisionKind.CREATE, DecisionKind.ESCALATE_CREATE)


@dataclass(frozen=True)
class Outcome:
    """Result of applying a decision to the repository."""

    decision: Decision
    kind: DecisionKind
    notification: Optional[Notification] = None


def should_escalate(previous: Severity, new: Severity) -> bool:
    """Whether a dismissed notification may be re-created at a new severity.

    Only ``warning -> action`` qualifies.
    """
    return Severity(previous) is Severity.WARNING and Severity(new) is Severity.ACTION


class NotificationService:
    """Service for idempotent notification writes and reads."""

    def __init__(self, repository: NotificationRepository):
        """Initialize notification service.

        Args:
            repository: Notification repository instance
        """
        self.repository = repository

    def decide(
        self,
        tenant_id: str,
        payload: NotificationPayload,
        reference_date: Optional[date] = None,
    ) -> Decision:
        """Decide how a candidate notification should be written.

        Args:
            tenant_id: Owning tenant
            payload: Candidate notification content
            reference_date: Date used for the dedupe time bucket (defaults to today)

        Returns:
            Decision with the dedupe key and, when relevant, the existing row
        """
        dedupe_key = payload_dedupe_key(payload, reference_date)

        existing_open = self.repository.find_open_by_dedupe_key(tenant_id, dedupe_key)
        if existing_open is not None:
            logger.debug("Open notification %s exists for %s", existing_open.id, dedupe_key)
            return Decision(DecisionKind.UPDATE_EXISTING, dedupe_key, existing_open)

        existing_any = self.repository.find_any_by_dedupe_key(tenant_id, dedupe_key)
        if existing_any is None:
            return Decision(DecisionKind.CREATE, dedupe_key)

        if should_escalate(existing_any.severity, payload.severity):
            logger.info(
                "Severity escalated from %s to %s for dismissed %s",
                existing_any.severity,
                payload.severity,
                dedupe_key,
            )
            return Decision(DecisionKind.ESCALATE_CREATE, dedupe_key, existing_any)

        logger.debug(
            "Notification %s already dismissed at %s, skipping",
            dedupe_key,
            existing_any.severity,
        )
        return Decision(DecisionKind.SKIP, dedupe_key, existing_any)

    def apply(
        self,
        tenant_id: str,
        payload: NotificationPayload,
        reference_date: Optional[date] = None,
        allow_create: bool = True,
    ) -> Outcome:
        """Decide and perform the resulting write.

        Args:
            tenant_id: Owning tenant
            payload: Candidate notification content
            reference_date: Date used for the dedupe time bucket (defaults to today)
            allow_create: If False, a create decision is reported as a skip

        Returns:
            Outcome with the effective decision kind and the written row

        Raises:
            RepositoryError: If the store fails (a dedupe conflict is not an error)
        """
        decision = self.decide(tenant_id, payload, reference_date)

        if decision.kind is DecisionKind.UPDATE_EXISTING:
            notification = self.repository.update(
                tenant_id, decision.existing.id, self._refresh_fields(payload), open_only=True
            )
            if notification is not None:
                return Outcome(decision, DecisionKind.UPDATE_EXISTING, notification)

            # Dismissed by another session after the lookup; the row stays archived
            logger.info(
                "Notification %s was dismissed during refresh, deciding again",
                decision.existing.id,
            )
            decision = self.decide(tenant_id, payload, reference_date)
            if decision.kind is DecisionKind.UPDATE_EXISTING:
                return Outcome(decision, DecisionKind.SKIP)

        if not decision.creates or not allow_create:
            return Outcome(decision, DecisionKind.SKIP)

        try:
            notification = self.repository.insert(
                tenant_id=tenant_id,
                event_type=payload.event_type,
                dedupe_key=decision.dedupe_key,
                message_key=payload.message_key,
                severity=Severity(payload.severity).value,
                entity_type=payload.entity_type or "generic",
                entity_id=payload.entity_id,
                reference_id=payload.reference_id,
                params=sanitize_params(payload.params),
                cta_label_key=payload.cta_label_key,
                cta_target=payload.cta_target,
            )
        except DedupeConflictError:
            logger.info("Lost insert race for %s, skipping", decision.dedupe_key)
            return Outcome(decision, DecisionKind.SKIP)

        logger.info("Created notification %s for %s", notification.id, decision.dedupe_key)
        return Outcome(decision, decision.kind, notification)

    def _refresh_fields(self, payload: NotificationPayload) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "message_key": payload.message_key,
            "params": sanitize_params(payload.params),
            "severity": Severity(payload.severity).value,
            "cta_label_key": payload.cta_label_key,
            "cta_target": payload.cta_target,
            "status": NotificationStatus.UNREAD.value,
            "read_at": None,
        }
        if payload.entity_type:
            fields["entity_type"] = payload.entity_type
        if payload.entity_id is not None:
            fields["entity_id"] = payload.entity_id
        return fields

    def _require(self, tenant_id: str, notification_id: int) -> Notification:
        notification = self.repository.get(tenant_id, notification_id)
        if notification is None:
            raise NotFoundError(notification_not_found(notification_id, tenant_id))
        return notification

    def mark_as_read(self, tenant_id: str, notification_id: int) -> Notification:
        """Mark a notification as read.

        Raises:
            NotFoundError: If the notification does not exist in the tenant
            RepositoryError: If the store fails
        """
        notification = self._require(tenant_id, notification_id)
        if not notification.is_open:
            return notification
        updated = self.repository.update(
            tenant_id,
            notification_id,
            {"status": NotificationStatus.READ.value, "read_at": datetime.now(UTC)},
            open_only=True,
        )
        return updated or self._require(tenant_id, notification_id)

    def dismiss(self, tenant_id: str, notification_id: int) -> Notification:
        """Dismiss (archive) a notification.

        Dismissing an already archived notification is a no-op.

        Raises:
            NotFoundError: If the notification does not exist in the tenant
            RepositoryError: If the store fails
        """
        notification = self._require(tenant_id, notification_id)
        if not notification.is_open:
            return notification
        logger.info("Dismissing notification %s (%s)", notification_id, notification.dedupe_key)
        updated = self.repository.update(
            tenant_id,
            notification_id,
            {"status": NotificationStatus.ARCHIVED.value, "dismissed_at": datetime.now(UTC)},
            open_only=True,
        )
        return updated or self._require(tenant_id, notification_id)

    def archive_by_reference(self, tenant_id: str, event_type: str, reference_id: str) -> int:
        """Archive open notifications for event type and reference id. Returns count."""
        count = self.repository.archive_matching(tenant_id, event_type, reference_id)
        logger.info("Archived %d %s notification(s) for %s", count, event_type, reference_id)
        return count

    def archive_by_dedupe_prefix(self, tenant_id: str, prefix: str) -> int:
        """Archive open notifications whose dedupe key starts with prefix. Returns count."""
        count = self.repository.archive_by_dedupe_prefix(tenant_id, prefix)
        logger.info("Archived %d notification(s) with dedupe prefix %s", count, prefix)
        return count

    def has_open_notification(
        self,
        tenant_id: str,
        event_type: str,
        entity_type: str,
        entity_id: str,
        time_window: TimeWindow = TimeWindow.MONTH,
        reference_date: Optional[date] = None,
    ) -> bool:
        """Check whether an open notification exists for the given dedupe parameters."""
        dedupe_key = build_dedupe_key(event_type, entity_type, entity_id, time_window, reference_date)
        return self.repository.find_open_by_dedupe_key(tenant_id, dedupe_key) is not None

    def find_by_legacy_key(
        self, tenant_id: str, event_type: str, reference_id: str
    ) -> Optional[Notification]:
        """Find a notification written under the legacy identity.

        Tries the legacy ``{event_type}:{reference_id}`` dedupe key first, then
        falls back to the newest row with matching event type and reference id.
        """
        legacy_key = build_legacy_dedupe_key(event_type, reference_id)
        notification = self.repository.find_any_by_dedupe_key(tenant_id, legacy_key)
        if notification is not None:
            return notification
        return self.repository.find_latest_by_reference(tenant_id, event_type, reference_id)

    def get_notification(self, tenant_id: str, notification_id: int) -> Optional[Notification]:
        """Get a notification by ID, or None if not found in the tenant."""
        return self.repository.get(tenant_id, notification_id)

    def list_notifications(
        self, tenant_id: str, include_archived: bool = False
    ) -> list[Notification]:
        """List notifications, newest first."""
        return self.repository.list_for_tenant(tenant_id, include_archived=include_archived)

    def list_visible(self, tenant_id: str) -> list[Notification]:
        """List open notifications with precedence rules applied."""
        return filter_by_precedence(self.repository.list_for_tenant(tenant_id))
