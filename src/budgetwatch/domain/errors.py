"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DedupeConflictError(ConflictError):
    """An open notification with the same dedupe key already exists."""


class RepositoryError(DomainError):
    """The notification store failed to complete an operation."""


class StateStoreError(DomainError):
    """The local balance state cache could not be written."""


def notification_not_found(notification_id: int, tenant_id: str) -> str:
    """Return message for missing notification."""
    return f"Notification {notification_id} not found for tenant '{tenant_id}'"


def duplicate_open_notification(dedupe_key: str, tenant_id: str) -> str:
    """Return message for an insert that hit the open dedupe key index."""
    return f"Open notification with dedupe_key '{dedupe_key}' already exists for tenant '{tenant_id}'"


def multiple_open_notifications(dedupe_key: str, tenant_id: str) -> str:
    """Return message when the open dedupe key invariant is broken."""
    return (
        f"Found more than one open notification with dedupe_key '{dedupe_key}' "
        f"for tenant '{tenant_id}'"
    )


def invalid_month_key(value: str) -> str:
    """Return message for a month key not in YYYY-MM form."""
    return f"Invalid month key '{value}': expected YYYY-MM"


def unknown_action_type(action_type: object) -> str:
    """Return message for an action tag outside CREATE/UPDATE/ARCHIVE/SKIP."""
    return (
        f"Unknown action type '{action_type}'. "
        "Supported types: CREATE, UPDATE, ARCHIVE, SKIP"
    )
