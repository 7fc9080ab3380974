"""Mapper functions to convert between domain models and SQLAlchemy models."""

from budgetwatch.domain import entities as domain
from budgetwatch.database.models import Notification as ORMNotification


def notification_to_domain(orm_notification: ORMNotification) -> domain.Notification:
    """Convert SQLAlchemy Notification model to domain Notification entity."""
    return domain.Notification(
        id=orm_notification.id,
        tenant_id=orm_notification.tenant_id,
        event_type=orm_notification.event_type,
        entity_type=orm_notification.entity_type,
        entity_id=orm_notification.entity_id,
        reference_id=orm_notification.reference_id,
        dedupe_key=orm_notification.dedupe_key,
        severity=domain.Severity(orm_notification.severity),
        message_key=orm_notification.message_key,
        params=dict(orm_notification.params or {}),
        cta_label_key=orm_notification.cta_label_key,
        cta_target=orm_notification.cta_target,
        status=domain.NotificationStatus(orm_notification.status),
        created_at=orm_notification.created_at,
        updated_at=orm_notification.updated_at,
        read_at=orm_notification.read_at,
        dismissed_at=orm_notification.dismissed_at,
    )
