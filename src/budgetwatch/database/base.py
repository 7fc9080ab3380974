"""Abstract storage interfaces."""

from abc import ABC, abstractmethod
from typing import Any, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from budgetwatch.domain.entities import BalanceState, Notification


class NotificationRepository(ABC):
    """Abstract tenant-scoped notification store."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the store."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize schema (create tables and indexes)."""
        pass

    # Lookups
    @abstractmethod
    def get(self, tenant_id: str, notification_id: int) -> Optional[Notification]:
        """Get a notification by ID within a tenant."""
        pass

    @abstractmethod
    def find_open_by_dedupe_key(self, tenant_id: str, dedupe_key: str) -> Optional[Notification]:
        """Get the open (not dismissed) notification with this dedupe key.

        Raises:
            RepositoryError: If more than one open row shares the key
        """
        pass

    @abstractmethod
    def find_any_by_dedupe_key(self, tenant_id: str, dedupe_key: str) -> Optional[Notification]:
        """Get the most recently created notification with this dedupe key, archived or not."""
        pass

    @abstractmethod
    def find_latest_by_reference(
        self, tenant_id: str, event_type: str, reference_id: str
    ) -> Optional[Notification]:
        """Get the most recently created notification for event type and reference id."""
        pass

    @abstractmethod
    def list_for_tenant(self, tenant_id: str, include_archived: bool = False) -> list[Notification]:
        """List notifications for a tenant, newest first."""
        pass

    # Mutations
    @abstractmethod
    def insert(
        self,
        tenant_id: str,
        event_type: str,
        dedupe_key: str,
        message_key: str,
        severity: str,
        entity_type: str = "generic",
        entity_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
        cta_label_key: Optional[str] = None,
        cta_target: Optional[str] = None,
    ) -> Notification:
        """Insert an unread notification.

        Raises:
            DedupeConflictError: If an open notification with the same dedupe key exists
        """
        pass

    @abstractmethod
    def update(
        self,
        tenant_id: str,
        notification_id: int,
        fields: dict[str, Any],
        open_only: bool = False,
    ) -> Optional[Notification]:
        """Update fields of a notification.

        With open_only the write only applies while the notification is not
        dismissed, checked atomically with the write; None is returned otherwise.

        Raises:
            NotFoundError: If the notification does not exist in the tenant
        """
        pass

    @abstractmethod
    def archive_matching(self, tenant_id: str, event_type: str, reference_id: str) -> int:
        """Archive every open notification with event type and reference id. Returns count."""
        pass

    @abstractmethod
    def archive_by_dedupe_prefix(self, tenant_id: str, prefix: str) -> int:
        """Archive every open notification whose dedupe key starts with prefix. Returns count."""
        pass


class BalanceStateStore(ABC):
    """Abstract flat key/value cache for the balance toast state machine."""

    @abstractmethod
    def get(self, key: str) -> Optional[BalanceState]:
        """Get the stored state, or None when absent."""
        pass

    @abstractmethod
    def set(self, key: str, state: BalanceState) -> None:
        """Store a state."""
        pass

    @abstractmethod
    def clear(self, key: str) -> None:
        """Remove one key."""
        pass

    @abstractmethod
    def clear_all(self) -> None:
        """Remove every key."""
        pass
