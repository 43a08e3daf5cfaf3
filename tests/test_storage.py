"""
Unit tests for storage layer.

Tests schema creation and the SQLite and in-memory usage stores.
"""

import os
import tempfile
from datetime import datetime

from case_critique.core.usage_ledger import UsageLedger
from case_critique.storage.db import get_connection
from case_critique.storage.models import UsageRecord
from case_critique.storage.repository import SqliteUsageStore, initialize_schema
from case_critique.storage.stores import InMemoryUsageStore


def _record(**overrides):
    values = dict(
        daily_count=3,
        last_daily_reset=datetime(2024, 1, 1, 8, 0, 0),
        minute_count=2,
        last_minute_reset=datetime(2024, 1, 1, 9, 30, 0),
        total_requests=40,
        total_tokens=12345,
    )
    values.update(overrides)
    return UsageRecord(**values)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify table is created correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("PRAGMA table_info(usage_record)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == [
                    'identity', 'daily_count', 'last_daily_reset', 'minute_count',
                    'last_minute_reset', 'total_requests', 'total_tokens'
                ]
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)


class TestSqliteUsageStore:
    """Test the durable store."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        self.store = SqliteUsageStore(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_and_load(self):
        self.store.save("alice", _record())
        assert self.store.load("alice") == _record()

    def test_load_missing(self):
        assert self.store.load("nobody") is None

    def test_save_replaces(self):
        self.store.save("alice", _record())
        self.store.save("alice", _record(total_requests=41))

        assert self.store.load("alice").total_requests == 41
        assert len(self.store.load_all()) == 1

    def test_delete(self):
        self.store.save("alice", _record())
        self.store.delete("alice")
        self.store.delete("alice")

        assert self.store.load("alice") is None

    def test_load_all(self):
        self.store.save("bob", _record(total_tokens=1))
        self.store.save("alice", _record(total_tokens=2))

        records = self.store.load_all()
        assert list(records) == ["alice", "bob"]
        assert records["bob"].total_tokens == 1

    def test_ledger_state_survives_new_instance(self):
        """Two ledgers over one database see the same counters."""
        clock = lambda: datetime(2024, 1, 1, 9, 0, 0)
        UsageLedger(SqliteUsageStore(self.db_path), clock=clock).record("alice", 50)

        status = UsageLedger(SqliteUsageStore(self.db_path), clock=clock).status("alice")
        assert status.minute_remaining == 14


class TestInMemoryUsageStore:
    """Test the process-local store."""

    def test_returns_copies(self):
        store = InMemoryUsageStore()
        record = _record()
        store.save("alice", record)
        record.total_requests = 0

        loaded = store.load("alice")
        assert loaded.total_requests == 40
        loaded.total_requests = 1
        assert store.load("alice").total_requests == 40

    def test_delete_and_load_all(self):
        store = InMemoryUsageStore()
        store.save("alice", _record())
        store.save("bob", _record())
        store.delete("alice")

        assert list(store.load_all()) == ["bob"]
        assert store.load("alice") is None
