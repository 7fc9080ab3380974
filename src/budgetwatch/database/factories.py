"""Factory functions for creating storage instances."""

import os
from pathlib import Path
from typing import Optional

from budgetwatch.database.sqlalchemy_db import SQLAlchemyNotificationRepository
from budgetwatch.database.state_store import JSONFileBalanceStateStore


def _default_data_dir() -> Path:
    """Return ~/.budgetwatch, creating it if needed."""
    data_dir = Path.home() / ".budgetwatch"
    data_dir.mkdir(exist_ok=True)
    return data_dir


def create_sqlite_repository(
    database_path: Optional[str] = None,
) -> SQLAlchemyNotificationRepository:
    """Create a SQLite-backed notification repository.

    Args:
        database_path: Path to SQLite database file. If None, checks BUDGETWATCH_DB_PATH
            environment variable, then defaults to ~/.budgetwatch/budgetwatch.db

    Returns:
        SQLAlchemyNotificationRepository instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get("BUDGETWATCH_DB_PATH")

    if database_path is None:
        database_path = str(_default_data_dir() / "budgetwatch.db")

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyNotificationRepository(database_url)


def create_state_store(state_path: Optional[str] = None) -> JSONFileBalanceStateStore:
    """Create the local balance state cache.

    Args:
        state_path: Path to the JSON cache file. If None, checks BUDGETWATCH_STATE_PATH
            environment variable, then defaults to ~/.budgetwatch/balance_states.json

    Returns:
        JSONFileBalanceStateStore instance
    """
    if state_path is None:
        state_path = os.environ.get("BUDGETWATCH_STATE_PATH")

    if state_path is None:
        state_path = str(_default_data_dir() / "balance_states.json")

    return JSONFileBalanceStateStore(state_path)
