"""
SQLite-backed usage store.

Persists per-identity usage counters so quotas survive restarts and are
shared by every process pointed at the same database file.
"""

from datetime import datetime
from typing import Dict, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import UsageRecord

_COLUMNS = (
    "daily_count, last_daily_reset, minute_count, last_minute_reset, "
    "total_requests, total_tokens"
)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the usage_record table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_record (
                identity TEXT PRIMARY KEY,
                daily_count INTEGER NOT NULL,
                last_daily_reset TEXT NOT NULL,
                minute_count INTEGER NOT NULL,
                last_minute_reset TEXT NOT NULL,
                total_requests INTEGER NOT NULL DEFAULT 0,
                total_tokens INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.commit()
    finally:
        conn.close()


def _row_to_record(row) -> UsageRecord:
    return UsageRecord(
        daily_count=row[0],
        last_daily_reset=datetime.fromisoformat(row[1]),
        minute_count=row[2],
        last_minute_reset=datetime.fromisoformat(row[3]),
        total_requests=row[4],
        total_tokens=row[5],
    )


class SqliteUsageStore:
    """Usage store persisting records to a SQLite database.

    Read-modify-write for one identity is serialized by the ledger's
    per-identity lock within a process; across processes the last write
    for an identity wins.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store and make sure the schema exists.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        initialize_schema(db_path)

    def load(self, identity: str) -> Optional[UsageRecord]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_COLUMNS} FROM usage_record WHERE identity = ?",
                (identity,)
            )
            row = cursor.fetchone()
            return _row_to_record(row) if row else None
        finally:
            conn.close()

    def save(self, identity: str, record: UsageRecord) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(f"""
                INSERT OR REPLACE INTO usage_record (identity, {_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                identity,
                record.daily_count,
                record.last_daily_reset.isoformat(),
                record.minute_count,
                record.last_minute_reset.isoformat(),
                record.total_requests,
                record.total_tokens,
            ))
            conn.commit()
        finally:
            conn.close()

    def delete(self, identity: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM usage_record WHERE identity = ?", (identity,))
            conn.commit()
        finally:
            conn.close()

    def load_all(self) -> Dict[str, UsageRecord]:
        """Fetch every stored record, ordered by identity."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT identity, {_COLUMNS} FROM usage_record ORDER BY identity"
            )
            return {row[0]: _row_to_record(row[1:]) for row in cursor.fetchall()}
        finally:
            conn.close()
