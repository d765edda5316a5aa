"""
Local Backup Store.

Durable per-document storage for unsaved serialized content. One slot per
document id; the latest write wins. Two tiers:
- MemoryBackupStore: process-local, used in tests and ephemeral sessions
- SqlBackupStore: SQLAlchemy-backed, survives restarts
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from tabledesk.config import get_settings
from tabledesk.database import create_backup_engine, create_session_factory, init_db
from tabledesk.editor_engine.models import BackupRecord
from tabledesk.exceptions import BackupStoreError
from tabledesk.models.backup import BackupEntry

logger = structlog.get_logger(__name__)


class BackupStore(ABC):
    """Key/value store of BackupRecords keyed by document id."""

    def __init__(self, key_prefix: Optional[str] = None):
        self.key_prefix = key_prefix if key_prefix is not None else get_settings().backup_key_prefix

    def key_for(self, document_id: str) -> str:
        """Storage key for a document (``editor_backup_<document_id>``)."""
        return f"{self.key_prefix}{document_id}"

    @abstractmethod
    def get(self, document_id: str) -> Optional[BackupRecord]:
        """Return the backup for ``document_id`` or None."""

    @abstractmethod
    def put(self, document_id: str, content: str) -> BackupRecord:
        """Write (or overwrite) the backup for ``document_id``."""

    @abstractmethod
    def delete(self, document_id: str) -> bool:
        """Remove the backup. Returns False if none existed."""

    def exists(self, document_id: str) -> bool:
        return self.get(document_id) is not None


class MemoryBackupStore(BackupStore):
    """Thread-safe in-memory backup store."""

    def __init__(self, key_prefix: Optional[str] = None):
        super().__init__(key_prefix)
        self._entries: Dict[str, BackupRecord] = {}
        self._lock = threading.RLock()

    def get(self, document_id: str) -> Optional[BackupRecord]:
        with self._lock:
            return self._entries.get(self.key_for(document_id))

    def put(self, document_id: str, content: str) -> BackupRecord:
        record = BackupRecord(document_id=document_id, content=content, updated_at=datetime.utcnow())
        with self._lock:
            self._entries[self.key_for(document_id)] = record
        logger.debug("backup_written", document_id=document_id, size=len(content), tier="memory")
        return record

    def delete(self, document_id: str) -> bool:
        with self._lock:
            return self._entries.pop(self.key_for(document_id), None) is not None

    def __len__(self) -> int:
        return len(self._entries)


class SqlBackupStore(BackupStore):
    """Backup store persisted in the ``editor_backups`` table."""

    def __init__(self, session_factory: sessionmaker, key_prefix: Optional[str] = None):
        super().__init__(key_prefix)
        self._session_factory = session_factory

    def get(self, document_id: str) -> Optional[BackupRecord]:
        key = self.key_for(document_id)
        try:
            with self._session_factory() as db:
                entry = db.get(BackupEntry, key)
                if entry is None:
                    return None
                return BackupRecord(
                    document_id=entry.document_id,
                    content=entry.content,
                    updated_at=entry.updated_at,
                )
        except SQLAlchemyError as e:
            logger.error("backup_read_failed", document_id=document_id, error=str(e))
            raise BackupStoreError(
                f"Failed to read backup for document {document_id}",
                details={"document_id": document_id},
            ) from e

    def put(self, document_id: str, content: str) -> BackupRecord:
        key = self.key_for(document_id)
        now = datetime.utcnow()
        try:
            with self._session_factory() as db:
                entry = db.get(BackupEntry, key)
                if entry is None:
                    entry = BackupEntry(key=key, document_id=document_id, content=content, updated_at=now)
                    db.add(entry)
                else:
                    entry.content = content
                    entry.updated_at = now
                db.commit()
        except SQLAlchemyError as e:
            logger.error("backup_write_failed", document_id=document_id, error=str(e))
            raise BackupStoreError(
                f"Failed to write backup for document {document_id}",
                details={"document_id": document_id},
            ) from e

        logger.debug("backup_written", document_id=document_id, size=len(content), tier="sql")
        return BackupRecord(document_id=document_id, content=content, updated_at=now)

    def delete(self, document_id: str) -> bool:
        key = self.key_for(document_id)
        try:
            with self._session_factory() as db:
                entry = db.get(BackupEntry, key)
                if entry is None:
                    return False
                db.delete(entry)
                db.commit()
                return True
        except SQLAlchemyError as e:
            logger.error("backup_delete_failed", document_id=document_id, error=str(e))
            raise BackupStoreError(
                f"Failed to delete backup for document {document_id}",
                details={"document_id": document_id},
            ) from e


# Singleton instance
_backup_store: Optional[BackupStore] = None


def get_backup_store() -> BackupStore:
    """
    Get the process-wide durable backup store.

    Backed by ``Settings.backup_database_url`` so a backup written by one
    session is found by the next session on the same document.
    """
    global _backup_store
    if _backup_store is None:
        engine = create_backup_engine()
        init_db(engine)
        _backup_store = SqlBackupStore(create_session_factory(engine))
        logger.info("backup_store_initialized", url=str(engine.url))
    return _backup_store
