"""Tests for idempotent notification writes."""

import pytest
from datetime import date

from budgetwatch.database.sqlalchemy_db import SQLAlchemyNotificationRepository
from budgetwatch.domain.entities import NotificationStatus, Severity, TimeWindow
from budgetwatch.domain.errors import NotFoundError, RepositoryError
from budgetwatch.domain.notification import (
    DecisionKind,
    NotificationService,
    should_escalate,
)

TENANT = "household-1"
OTHER_TENANT = "household-2"
JANUARY = date(2025, 1, 15)


class BlindRepository(SQLAlchemyNotificationRepository):
    """Repository whose lookups miss, as if another writer raced ahead."""

    def find_open_by_dedupe_key(self, tenant_id, dedupe_key):
        return None

    def find_any_by_dedupe_key(self, tenant_id, dedupe_key):
        return None


class DismissingRepository(SQLAlchemyNotificationRepository):
    """Repository whose open lookup is followed by a dismissal from another session."""

    def __init__(self, database_url, other):
        super().__init__(database_url)
        self.other = other

    def find_open_by_dedupe_key(self, tenant_id, dedupe_key):
        found = super().find_open_by_dedupe_key(tenant_id, dedupe_key)
        if found is not None:
            NotificationService(self.other).dismiss(tenant_id, found.id)
        return found


class TestDecide:
    """Tests for the idempotency decision."""

    def test_create_when_nothing_exists(self, notification_service, make_payload):
        """Test that a new condition is created."""
        decision = notification_service.decide(TENANT, make_payload(), JANUARY)

        assert decision.kind is DecisionKind.CREATE
        assert decision.dedupe_key == "MONTH_AT_RISK:month::2025-01"
        assert decision.existing is None

    def test_update_when_open_exists(self, notification_service, make_payload):
        """Test that an open notification is refreshed instead of duplicated."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)

        decision = notification_service.decide(TENANT, make_payload(), JANUARY)

        assert decision.kind is DecisionKind.UPDATE_EXISTING
        assert decision.existing.id == created.notification.id

    def test_skip_when_archived_same_severity(self, notification_service, make_payload):
        """Test that a dismissed notification is not resurrected."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        notification_service.dismiss(TENANT, created.notification.id)

        decision = notification_service.decide(TENANT, make_payload(), JANUARY)

        assert decision.kind is DecisionKind.SKIP
        assert decision.existing.id == created.notification.id

    def test_escalate_when_archived_warning_becomes_action(
        self, notification_service, make_payload
    ):
        """Test that a dismissed warning re-appears once it becomes an action."""
        created = notification_service.apply(
            TENANT, make_payload(severity=Severity.WARNING), JANUARY
        )
        notification_service.dismiss(TENANT, created.notification.id)

        decision = notification_service.decide(
            TENANT, make_payload(severity=Severity.ACTION), JANUARY
        )

        assert decision.kind is DecisionKind.ESCALATE_CREATE

    def test_no_escalation_for_other_transitions(self, notification_service, make_payload):
        """Test that info -> action after dismissal stays skipped."""
        created = notification_service.apply(TENANT, make_payload(severity=Severity.INFO), JANUARY)
        notification_service.dismiss(TENANT, created.notification.id)

        decision = notification_service.decide(
            TENANT, make_payload(severity=Severity.ACTION), JANUARY
        )

        assert decision.kind is DecisionKind.SKIP


def test_should_escalate():
    """Test that only warning -> action escalates."""
    assert should_escalate(Severity.WARNING, Severity.ACTION)
    assert not should_escalate(Severity.ACTION, Severity.ACTION)
    assert not should_escalate(Severity.INFO, Severity.ACTION)
    assert not should_escalate(Severity.INFO, Severity.WARNING)
    assert not should_escalate(Severity.ACTION, Severity.WARNING)


class TestApply:
    """Tests for applying decisions to the repository."""

    def test_create_many_times_keeps_one_open_row(self, notification_service, make_payload):
        """Test that repeating the same create leaves exactly one open row."""
        outcomes = [
            notification_service.apply(TENANT, make_payload(), JANUARY) for _ in range(5)
        ]

        assert outcomes[0].kind is DecisionKind.CREATE
        assert all(o.kind is DecisionKind.UPDATE_EXISTING for o in outcomes[1:])
        assert len(notification_service.list_notifications(TENANT)) == 1

    def test_update_refreshes_and_marks_unread(self, notification_service, make_payload):
        """Test that an update rewrites content and resets read state."""
        created = notification_service.apply(
            TENANT, make_payload(params={"count": 1}), JANUARY
        )
        notification_service.mark_as_read(TENANT, created.notification.id)

        outcome = notification_service.apply(
            TENANT, make_payload(severity=Severity.ACTION, params={"count": 3}), JANUARY
        )

        updated = outcome.notification
        assert outcome.kind is DecisionKind.UPDATE_EXISTING
        assert updated.id == created.notification.id
        assert updated.severity is Severity.ACTION
        assert updated.params == {"count": 3}
        assert updated.status is NotificationStatus.UNREAD
        assert updated.read_at is None
        assert updated.updated_at is not None

    def test_dismissed_stays_dismissed(self, notification_service, make_payload):
        """Test that re-evaluating a dismissed condition writes nothing."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        notification_service.dismiss(TENANT, created.notification.id)

        outcome = notification_service.apply(TENANT, make_payload(), JANUARY)

        assert outcome.kind is DecisionKind.SKIP
        assert outcome.notification is None
        assert notification_service.list_notifications(TENANT) == []
        archived = notification_service.get_notification(TENANT, created.notification.id)
        assert archived.status is NotificationStatus.ARCHIVED

    def test_escalation_creates_new_row_and_keeps_archived(
        self, notification_service, make_payload
    ):
        """Test that escalation inserts a new row next to the untouched archived one."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        dismissed = notification_service.dismiss(TENANT, created.notification.id)

        outcome = notification_service.apply(
            TENANT, make_payload(severity=Severity.ACTION), JANUARY
        )

        assert outcome.kind is DecisionKind.ESCALATE_CREATE
        assert outcome.notification.id != created.notification.id
        assert outcome.notification.severity is Severity.ACTION
        assert outcome.notification.dedupe_key == created.notification.dedupe_key

        old = notification_service.get_notification(TENANT, created.notification.id)
        assert old == dismissed

    def test_new_month_creates_new_row(self, notification_service, make_payload):
        """Test that a monthly alert re-appears in the next month."""
        notification_service.apply(TENANT, make_payload(), date(2025, 1, 20))
        outcome = notification_service.apply(TENANT, make_payload(), date(2025, 2, 2))

        assert outcome.kind is DecisionKind.CREATE
        assert len(notification_service.list_notifications(TENANT)) == 2

    def test_allow_create_false_skips(self, notification_service, make_payload):
        """Test that a create decision is reported as skip when creation is not allowed."""
        outcome = notification_service.apply(TENANT, make_payload(), JANUARY, allow_create=False)

        assert outcome.kind is DecisionKind.SKIP
        assert notification_service.list_notifications(TENANT) == []

    def test_params_are_sanitized(self, notification_service, make_payload):
        """Test that unknown and nested params are not stored."""
        outcome = notification_service.apply(
            TENANT,
            make_payload(params={"count": 2, "secret": "x", "month_key": {"nested": True}}),
            JANUARY,
        )

        assert outcome.notification.params == {"count": 2}

    def test_lost_race_is_reported_as_skip(self, temp_db, make_payload):
        """Test that a uniqueness conflict on insert becomes a skip."""
        NotificationService(temp_db).apply(TENANT, make_payload(), JANUARY)

        blind = BlindRepository(temp_db.database_url)
        try:
            outcome = NotificationService(blind).apply(TENANT, make_payload(), JANUARY)
        finally:
            blind.disconnect()

        assert outcome.kind is DecisionKind.SKIP
        assert outcome.decision.kind is DecisionKind.CREATE
        assert len(temp_db.list_for_tenant(TENANT)) == 1

    def test_tenants_are_isolated(self, notification_service, make_payload):
        """Test that the same condition is tracked per tenant."""
        first = notification_service.apply(TENANT, make_payload(), JANUARY)
        second = notification_service.apply(OTHER_TENANT, make_payload(), JANUARY)

        assert first.kind is DecisionKind.CREATE
        assert second.kind is DecisionKind.CREATE
        assert notification_service.get_notification(OTHER_TENANT, first.notification.id) is None


class TestReadAndDismiss:
    """Tests for user-driven status changes."""

    def test_mark_as_read(self, notification_service, make_payload):
        """Test marking a notification as read."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)

        read = notification_service.mark_as_read(TENANT, created.notification.id)

        assert read.status is NotificationStatus.READ
        assert read.read_at is not None
        assert read.is_open

    def test_dismiss_twice_is_noop(self, notification_service, make_payload):
        """Test that dismissing an archived notification changes nothing."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        first = notification_service.dismiss(TENANT, created.notification.id)

        second = notification_service.dismiss(TENANT, created.notification.id)

        assert second == first
        assert not second.is_open

    def test_missing_notification(self, notification_service):
        """Test that unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError, match="Notification 999 not found"):
            notification_service.mark_as_read(TENANT, 999)
        with pytest.raises(NotFoundError):
            notification_service.dismiss(TENANT, 999)

    def test_dismiss_other_tenant(self, notification_service, make_payload):
        """Test that a tenant cannot dismiss another tenant's notification."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)

        with pytest.raises(NotFoundError):
            notification_service.dismiss(OTHER_TENANT, created.notification.id)


class TestArchiveAndLookup:
    """Tests for bulk archival and lookups."""

    def test_archive_by_reference(self, notification_service, make_payload):
        """Test archiving open notifications for an event type and reference id."""
        payload = make_payload(
            event_type="PAYMENT_DELAYED",
            severity=Severity.ACTION,
            entity_type="generic",
            reference_id="overdue_payments",
        )
        notification_service.apply(TENANT, payload, JANUARY)

        assert notification_service.archive_by_reference(
            TENANT, "PAYMENT_DELAYED", "overdue_payments"
        ) == 1
        assert notification_service.archive_by_reference(
            TENANT, "PAYMENT_DELAYED", "overdue_payments"
        ) == 0
        assert notification_service.list_notifications(TENANT) == []

    def test_archive_by_dedupe_prefix(self, notification_service, make_payload):
        """Test archiving by dedupe key prefix only touches matching keys."""
        notification_service.apply(TENANT, make_payload(), date(2025, 1, 5))
        notification_service.apply(TENANT, make_payload(), date(2025, 2, 5))
        notification_service.apply(
            TENANT, make_payload(event_type="RISK_REDUCED", severity=Severity.SUCCESS), JANUARY
        )

        count = notification_service.archive_by_dedupe_prefix(TENANT, "MONTH_AT_RISK:month:")

        assert count == 2
        remaining = notification_service.list_notifications(TENANT)
        assert [n.event_type for n in remaining] == ["RISK_REDUCED"]

    def test_archive_prefix_treats_wildcards_literally(self, notification_service, make_payload):
        """Test that LIKE wildcards in the prefix do not match other keys."""
        notification_service.apply(TENANT, make_payload(), JANUARY)

        assert notification_service.archive_by_dedupe_prefix(TENANT, "MONTH%") == 0

    def test_has_open_notification(self, notification_service, make_payload):
        """Test the open-notification check."""
        assert not notification_service.has_open_notification(
            TENANT, "MONTH_AT_RISK", "month", "", TimeWindow.MONTH, JANUARY
        )

        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        assert notification_service.has_open_notification(
            TENANT, "MONTH_AT_RISK", "month", "", TimeWindow.MONTH, JANUARY
        )

        notification_service.dismiss(TENANT, created.notification.id)
        assert not notification_service.has_open_notification(
            TENANT, "MONTH_AT_RISK", "month", "", TimeWindow.MONTH, JANUARY
        )

    def test_find_by_legacy_key(self, temp_db, notification_service):
        """Test finding rows written under the legacy event/reference key."""
        legacy = temp_db.insert(
            tenant_id=TENANT,
            event_type="PAYMENT_DELAYED",
            dedupe_key="PAYMENT_DELAYED:overdue_payments",
            message_key="notifications.messages.payment_delayed",
            severity="action",
            reference_id="overdue_payments",
        )

        found = notification_service.find_by_legacy_key(
            TENANT, "PAYMENT_DELAYED", "overdue_payments"
        )

        assert found.id == legacy.id

    def test_find_by_legacy_key_falls_back_to_reference(
        self, notification_service, make_payload
    ):
        """Test the fallback to the newest row with the same reference id."""
        created = notification_service.apply(
            TENANT,
            make_payload(
                event_type="PAYMENT_DELAYED",
                severity=Severity.ACTION,
                entity_type="generic",
                reference_id="overdue_payments",
            ),
            JANUARY,
        )

        found = notification_service.find_by_legacy_key(
            TENANT, "PAYMENT_DELAYED", "overdue_payments"
        )

        assert found.id == created.notification.id
        assert notification_service.find_by_legacy_key(TENANT, "PAYMENT_DELAYED", "other") is None


class TestRepository:
    """Tests for repository guarantees the service relies on."""

    def test_open_dedupe_key_is_unique(self, temp_db):
        """Test that a second open row with the same key is rejected."""
        from budgetwatch.domain.errors import DedupeConflictError

        fields = dict(
            tenant_id=TENANT,
            event_type="MONTH_AT_RISK",
            dedupe_key="MONTH_AT_RISK:month::2025-01",
            message_key="notifications.messages.month_at_risk",
            severity="warning",
        )
        temp_db.insert(**fields)

        with pytest.raises(DedupeConflictError):
            temp_db.insert(**fields)

        # The session is still usable after the conflict
        assert len(temp_db.list_for_tenant(TENANT)) == 1

    def test_update_rejects_unknown_fields(self, temp_db):
        """Test that identity fields cannot be rewritten."""
        from budgetwatch.domain.errors import ValidationError

        created = temp_db.insert(
            tenant_id=TENANT,
            event_type="MONTH_AT_RISK",
            dedupe_key="k",
            message_key="m",
            severity="info",
        )

        with pytest.raises(ValidationError, match="dedupe_key"):
            temp_db.update(TENANT, created.id, {"dedupe_key": "other"})

    def test_update_missing_row(self, temp_db):
        """Test updating a missing notification."""
        with pytest.raises(NotFoundError):
            temp_db.update(TENANT, 42, {"status": "read"})

    def test_repository_error_on_broken_store(self, tmp_path):
        """Test that driver failures surface as RepositoryError."""
        from sqlalchemy import text

        repository = SQLAlchemyNotificationRepository(f"sqlite:///{tmp_path / 'broken.db'}")
        session = repository._get_session()
        session.execute(text("DROP TABLE notifications"))
        session.commit()

        try:
            with pytest.raises(RepositoryError, match="Notification store error"):
                repository.list_for_tenant(TENANT)
        finally:
            repository.disconnect()


class TestConcurrentDismissal:
    """Tests for rows dismissed by another session between lookup and write."""

    def test_refresh_does_not_reopen_dismissed_row(self, temp_db, make_payload):
        """Test that a refresh racing a dismissal leaves the row archived."""
        created = NotificationService(temp_db).apply(TENANT, make_payload(), JANUARY)

        racing = DismissingRepository(temp_db.database_url, temp_db)
        try:
            outcome = NotificationService(racing).apply(TENANT, make_payload(), JANUARY)
        finally:
            racing.disconnect()

        assert outcome.kind is DecisionKind.SKIP
        assert outcome.notification is None
        row = temp_db.get(TENANT, created.notification.id)
        assert row.status is NotificationStatus.ARCHIVED
        assert row.dismissed_at is not None
        assert temp_db.list_for_tenant(TENANT) == []

    def test_refresh_race_still_escalates(self, temp_db, make_payload):
        """Test that a dismissed warning is re-created when the payload is an action."""
        created = NotificationService(temp_db).apply(
            TENANT, make_payload(severity=Severity.WARNING), JANUARY
        )

        racing = DismissingRepository(temp_db.database_url, temp_db)
        try:
            outcome = NotificationService(racing).apply(
                TENANT, make_payload(severity=Severity.ACTION), JANUARY
            )
        finally:
            racing.disconnect()

        assert outcome.kind is DecisionKind.ESCALATE_CREATE
        assert outcome.notification.id != created.notification.id
        old = temp_db.get(TENANT, created.notification.id)
        assert old.status is NotificationStatus.ARCHIVED
        assert old.severity is Severity.WARNING

    def test_open_only_update_skips_archived_row(self, temp_db, notification_service, make_payload):
        """Test that a conditional update never writes an archived row."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        dismissed = notification_service.dismiss(TENANT, created.notification.id)

        result = temp_db.update(
            TENANT, created.notification.id, {"status": "unread", "read_at": None}, open_only=True
        )

        assert result is None
        assert temp_db.get(TENANT, created.notification.id) == dismissed

    def test_mark_as_read_after_dismissal_keeps_archived(
        self, temp_db, notification_service, make_payload
    ):
        """Test that marking a just-dismissed row as read does not change it."""
        created = notification_service.apply(TENANT, make_payload(), JANUARY)
        stale = created.notification

        class StaleRepository:
            """Returns the row as it was before the dismissal."""

            def __init__(self, inner):
                self.inner = inner

            def get(self, tenant_id, notification_id):
                row = self.inner.get(tenant_id, notification_id)
                return stale if row is not None and row.id == stale.id else row

            def __getattr__(self, name):
                return getattr(self.inner, name)

        notification_service.dismiss(TENANT, stale.id)
        stale_service = NotificationService(StaleRepository(temp_db))

        stale_service.mark_as_read(TENANT, stale.id)

        row = temp_db.get(TENANT, stale.id)
        assert row.status is NotificationStatus.ARCHIVED
        assert row.read_at is None
        assert row.dismissed_at is not None


def test_list_visible_applies_precedence(notification_service, make_payload):
    """Test that visible notifications hide alerts outranked by an open one."""
    notification_service.apply(
        TENANT,
        make_payload(event_type="RECURRING_LATE_PAYMENT", entity_type="category", entity_id="cat-1"),
        JANUARY,
    )
    notification_service.apply(
        TENANT, make_payload(event_type="MONTH_AT_RISK", severity=Severity.ACTION), JANUARY
    )
    risk_reduced = notification_service.apply(
        TENANT, make_payload(event_type="RISK_REDUCED", severity=Severity.SUCCESS), JANUARY
    )
    notification_service.dismiss(TENANT, risk_reduced.notification.id)

    visible = notification_service.list_visible(TENANT)

    assert [n.event_type for n in visible] == ["MONTH_AT_RISK"]
    assert len(notification_service.list_notifications(TENANT)) == 2
