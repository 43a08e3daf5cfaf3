"""
Database connection management.

Provides SQLite connections for durable usage records.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = ".case-critique.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection that waits up to 10s on a locked database
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=10.0)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
