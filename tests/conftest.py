"""Shared pytest fixtures for budgetwatch tests."""

import tempfile
import os
from datetime import date
import pytest

from budgetwatch.database.factories import create_sqlite_repository
from budgetwatch.database.state_store import InMemoryBalanceStateStore
from budgetwatch.domain.actions import ActionExecutor
from budgetwatch.domain.entities import NotificationPayload, Severity, TimeWindow
from budgetwatch.domain.notification import NotificationService

TENANT = "household-1"
OTHER_TENANT = "household-2"
JANUARY = date(2025, 1, 15)


@pytest.fixture
def temp_db():
    """Create a temporary notification repository for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    repository = create_sqlite_repository(database_path=db_path)
    # Store the path for tests that need it
    repository.database_path = db_path
    repository.connect()
    repository.initialize_schema()

    yield repository

    # Cleanup
    repository.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def notification_service(temp_db):
    """Create a NotificationService with a temporary database."""
    return NotificationService(temp_db)


@pytest.fixture
def executor(notification_service):
    """Create an ActionExecutor on top of the notification service."""
    return ActionExecutor(notification_service)


@pytest.fixture
def state_store():
    """Create an in-memory balance state store."""
    return InMemoryBalanceStateStore()


@pytest.fixture
def state_path(tmp_path):
    """Return a path for a JSON balance state cache that does not exist yet."""
    return str(tmp_path / "state" / "balance_states.json")


@pytest.fixture
def make_payload():
    """Build notification payloads with sensible defaults."""

    def _make(
        event_type="MONTH_AT_RISK",
        severity=Severity.WARNING,
        entity_type="month",
        entity_id=None,
        reference_id=None,
        params=None,
        time_window=TimeWindow.MONTH,
        message_key=None,
    ):
        return NotificationPayload(
            event_type=event_type,
            message_key=message_key or f"notifications.messages.{event_type.lower()}",
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
            reference_id=reference_id,
            params=params or {},
            time_window=time_window,
        )

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
