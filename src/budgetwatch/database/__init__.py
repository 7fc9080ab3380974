"""Storage layer for budgetwatch."""

from budgetwatch.database.base import BalanceStateStore, NotificationRepository
from budgetwatch.database.factories import create_sqlite_repository, create_state_store

__all__ = [
    "NotificationRepository",
    "BalanceStateStore",
    "create_sqlite_repository",
    "create_state_store",
]
