#!/usr/bin/env python3
"""Migration script to add dedupe keys to the notifications table.

Older databases identified a notification by ``event_type`` and
``reference_id`` only. This migration:

- adds a ``dedupe_key`` column (TEXT) when it is missing
- back-fills it with the legacy key ``{event_type}:{reference_id}``
  (or just ``{event_type}`` when there is no reference id)
- archives all but the newest open row for each (tenant_id, dedupe_key)
- creates the partial unique index ``uq_notifications_open_dedupe`` on
  (tenant_id, dedupe_key) for rows that are not dismissed

Back-filled rows keep their legacy key. New writes use canonical keys, and
the legacy lookup finds the old rows.

Usage:
    python migrations/migrate_add_dedupe_index.py [--db-path PATH]
"""

import sys
from datetime import datetime, UTC
from pathlib import Path

# Add src to path so we can import budgetwatch modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import text, inspect
from budgetwatch.database.factories import create_sqlite_repository
from budgetwatch.database.models import OPEN_DEDUPE_INDEX


def column_exists(engine, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table.

    Args:
        engine: SQLAlchemy engine
        table_name: Name of the table
        column_name: Name of the column

    Returns:
        True if column exists, False otherwise
    """
    inspector = inspect(engine)
    columns = [col["name"] for col in inspector.get_columns(table_name)]
    return column_name in columns


def index_exists(engine, table_name: str, index_name: str) -> bool:
    """Check if an index exists on a table."""
    inspector = inspect(engine)
    return any(index["name"] == index_name for index in inspector.get_indexes(table_name))


def backfill_legacy_keys(conn) -> int:
    """Fill empty dedupe keys with the legacy event/reference key. Returns row count."""
    result = conn.execute(
        text(
            "UPDATE notifications SET dedupe_key = CASE "
            "WHEN reference_id IS NULL OR reference_id = '' THEN event_type "
            "ELSE event_type || ':' || reference_id END "
            "WHERE dedupe_key IS NULL OR dedupe_key = ''"
        )
    )
    return result.rowcount


def archive_duplicate_open_rows(conn) -> int:
    """Archive every open row that is not the newest for its tenant and key.

    Returns:
        Number of rows archived
    """
    rows = conn.execute(
        text(
            "SELECT id, tenant_id, dedupe_key FROM notifications "
            "WHERE dismissed_at IS NULL "
            "ORDER BY tenant_id, dedupe_key, created_at DESC, id DESC"
        )
    ).fetchall()

    seen = set()
    duplicate_ids = []
    for row_id, tenant_id, dedupe_key in rows:
        if (tenant_id, dedupe_key) in seen:
            duplicate_ids.append(row_id)
        else:
            seen.add((tenant_id, dedupe_key))

    now = datetime.now(UTC)
    for row_id in duplicate_ids:
        conn.execute(
            text(
                "UPDATE notifications SET dismissed_at = :now, updated_at = :now, "
                "status = 'archived' WHERE id = :id"
            ),
            {"now": now, "id": row_id},
        )
    return len(duplicate_ids)


def migrate_database(database_path: str | None = None) -> None:
    """Migrate database to add dedupe keys and the open dedupe key index.

    Args:
        database_path: Path to database file. If None, uses default location.

    Raises:
        Exception: If migration fails
    """
    repository = create_sqlite_repository(database_path=database_path)
    repository.connect()

    try:
        # Get engine from sessionmaker by creating a session and accessing its bind
        session = repository.session_factory()
        try:
            engine = session.bind
            if engine is None:
                raise Exception("Could not get database engine from session")
        finally:
            session.close()

        inspector = inspect(engine)
        if "notifications" not in inspector.get_table_names():
            raise Exception("Table 'notifications' does not exist. Please initialize the database schema first.")

        if index_exists(engine, "notifications", OPEN_DEDUPE_INDEX):
            print(f"Migration already applied: {OPEN_DEDUPE_INDEX} exists on notifications table")
            return

        print("Starting migration: adding dedupe keys...")

        with engine.begin() as conn:
            if not column_exists(engine, "notifications", "dedupe_key"):
                conn.execute(text("ALTER TABLE notifications ADD COLUMN dedupe_key TEXT"))
                print("  Added column: dedupe_key")

            filled = backfill_legacy_keys(conn)
            print(f"  Back-filled {filled} legacy dedupe key(s)")

            archived = archive_duplicate_open_rows(conn)
            print(f"  Archived {archived} duplicate open notification(s)")

            conn.execute(
                text(
                    f"CREATE UNIQUE INDEX {OPEN_DEDUPE_INDEX} "
                    "ON notifications (tenant_id, dedupe_key) WHERE dismissed_at IS NULL"
                )
            )
            print(f"  Created index: {OPEN_DEDUPE_INDEX}")

        print("Migration completed successfully!")

    except Exception as e:
        print(f"Migration failed: {e}")
        raise
    finally:
        repository.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Migrate database to add notification dedupe keys"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides BUDGETWATCH_DB_PATH environment variable)",
    )
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
