"""
Unit tests for the local backup stores.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from tabledesk.database import create_backup_engine, create_session_factory, init_db
from tabledesk.exceptions import BackupStoreError
from tabledesk.models import BackupEntry
import tabledesk.services.backup_store as backup_module
from tabledesk.services.backup_store import MemoryBackupStore, SqlBackupStore, get_backup_store


class TestMemoryBackupStore:
    """Tests for the in-memory tier."""

    def test_key_format(self, memory_backups: MemoryBackupStore):
        assert memory_backups.key_for("doc-1") == "editor_backup_doc-1"

    def test_put_and_get(self, memory_backups: MemoryBackupStore):
        memory_backups.put("doc-1", "a,b")
        record = memory_backups.get("doc-1")
        assert record.document_id == "doc-1"
        assert record.content == "a,b"

    def test_latest_write_wins(self, memory_backups: MemoryBackupStore):
        memory_backups.put("doc-1", "first")
        memory_backups.put("doc-1", "second")
        assert memory_backups.get("doc-1").content == "second"
        assert len(memory_backups) == 1

    def test_documents_are_isolated(self, memory_backups: MemoryBackupStore):
        memory_backups.put("doc-1", "one")
        memory_backups.put("doc-2", "two")
        assert memory_backups.get("doc-1").content == "one"
        assert memory_backups.get("doc-2").content == "two"

    def test_delete(self, memory_backups: MemoryBackupStore):
        memory_backups.put("doc-1", "x")
        assert memory_backups.delete("doc-1") is True
        assert memory_backups.delete("doc-1") is False
        assert memory_backups.exists("doc-1") is False


class TestSqlBackupStore:
    """Tests for the SQLAlchemy tier."""

    def test_put_creates_row(self, sql_backups: SqlBackupStore, db_session):
        sql_backups.put("doc-1", "a,b\n1,2")

        entry = db_session.get(BackupEntry, "editor_backup_doc-1")
        assert entry is not None
        assert entry.document_id == "doc-1"
        assert entry.content == "a,b\n1,2"

    def test_round_trip(self, sql_backups: SqlBackupStore):
        written = sql_backups.put("doc-1", "content")
        record = sql_backups.get("doc-1")
        assert record.content == "content"
        assert record.updated_at == written.updated_at

    def test_overwrite_keeps_single_row(self, sql_backups: SqlBackupStore, db_session):
        sql_backups.put("doc-1", "first")
        sql_backups.put("doc-1", "second")

        assert sql_backups.get("doc-1").content == "second"
        assert db_session.query(BackupEntry).count() == 1

    def test_missing_returns_none(self, sql_backups: SqlBackupStore):
        assert sql_backups.get("nope") is None
        assert sql_backups.delete("nope") is False

    def test_delete(self, sql_backups: SqlBackupStore):
        sql_backups.put("doc-1", "x")
        assert sql_backups.delete("doc-1") is True
        assert sql_backups.get("doc-1") is None

    def test_database_errors_are_wrapped(self):
        factory = MagicMock(side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")))
        store = SqlBackupStore(factory, key_prefix="editor_backup_")

        with pytest.raises(BackupStoreError) as exc_info:
            store.get("doc-1")
        assert exc_info.value.error_code == "TDK-300"
        assert exc_info.value.details == {"document_id": "doc-1"}


class TestDatabaseHelpers:
    """Tests for engine and table setup."""

    def test_init_db_creates_backup_table(self):
        engine = create_backup_engine("sqlite:///:memory:")
        init_db(engine)

        store = SqlBackupStore(create_session_factory(engine), key_prefix="editor_backup_")
        store.put("doc-9", "a\n1")

        assert "editor_backups" in inspect(engine).get_table_names()
        assert store.get("doc-9").content == "a\n1"
        engine.dispose()


class TestDefaultBackupStore:
    """Tests for the process-wide durable store."""

    def test_is_sql_backed_singleton(self):
        store = get_backup_store()
        assert isinstance(store, SqlBackupStore)
        assert get_backup_store() is store

    def test_survives_a_new_store_instance(self, tmp_path):
        get_backup_store().put("doc-1", "a,b\n1,2")

        # Simulate a fresh process on the same database file
        backup_module._backup_store = None
        record = get_backup_store().get("doc-1")

        assert record is not None
        assert record.content == "a,b\n1,2"
        assert (tmp_path / "backups.db").exists()
