"""
Persistence coordinator.

Decides where serialized content goes on save:
- OFFLINE: local backup only (LOCAL_ONLY, not an error)
- otherwise: remote store; the local backup is cleared on confirmation
- remote failure: local backup, monitor downgraded, RemoteSaveError raised

Also owns the one-shot backup recovery offered when a session starts.
"""

from typing import Optional

import structlog

from tabledesk.editor_engine.codec import TabularCodec, get_tabular_codec
from tabledesk.editor_engine.connectivity import ConnectivityMonitor
from tabledesk.editor_engine.context import SessionContext
from tabledesk.editor_engine.events import (
    BackupChanged,
    EventBus,
    RecoveryOffered,
    SaveCompleted,
    SessionEvent,
)
from tabledesk.editor_engine.models import BackupRecord, DocumentModel, SaveResult, SaveStatus
from tabledesk.exceptions import BackupStoreError, RecoveryNotAvailableError, RemoteSaveError
from tabledesk.services.backup_store import BackupStore
from tabledesk.services.notification_service import (
    BACKUP_RECOVERY,
    LOCAL_BACKUP_NOTICE,
    REMOTE_SAVE_FAILED,
    NotificationCenter,
    NotificationPriority,
)
from tabledesk.services.remote_store import RemoteDocumentStore

logger = structlog.get_logger(__name__)

BACKUP_RESTORED = "backup-restored"
BACKUP_WRITE_FAILED = "backup-write-failed"


class PersistenceCoordinator:
    """Routes saves to the remote store or the local backup."""

    def __init__(
        self,
        context: SessionContext,
        store: RemoteDocumentStore,
        backups: BackupStore,
        monitor: ConnectivityMonitor,
        codec: Optional[TabularCodec] = None,
        notifications: Optional[NotificationCenter] = None,
        events: Optional[EventBus] = None,
    ):
        self.context = context
        self.store = store
        self.backups = backups
        self.monitor = monitor
        self.codec = codec or get_tabular_codec()
        self.notifications = notifications or NotificationCenter()
        self.events = events or EventBus()

    @property
    def document_id(self) -> str:
        return self.context.document_id

    async def save(self, model: DocumentModel, delimiter: Optional[str] = None) -> SaveResult:
        """
        Persist the current model.

        Args:
            model: Table to save.
            delimiter: Output delimiter; defaults to the session's resolved one.

        Returns:
            SaveResult with SAVED or LOCAL_ONLY status.

        Raises:
            RemoteSaveError: The remote write failed. The content is already in
                the local backup (``error.backup``).
        """
        text = self.codec.serialize(model.columns, model.rows, delimiter or self.context.resolved_delimiter)

        if self.monitor.is_offline:
            record = self._write_backup(text)
            self.context.has_unsaved_changes = True
            self.notifications.info(LOCAL_BACKUP_NOTICE, "Offline: Changes saved to local backup.")
            logger.info("save_deferred_offline", document_id=self.document_id, backed_up=record is not None)
            return self._complete(SaveResult(
                status=SaveStatus.LOCAL_ONLY,
                backup=record,
                error=None if record else "Local backup failed",
            ))

        revision = self.context.revision
        try:
            location = await self.store.write_content(self.context.project_id, self.document_id, text)
        except Exception as e:
            logger.error(
                "remote_save_failed",
                document_id=self.document_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            record = self._write_backup(text)
            self.context.has_unsaved_changes = True
            self.monitor.report_remote_failure()
            self.notifications.error(REMOTE_SAVE_FAILED, "Save failed. Changes backed up locally.")
            self._complete(SaveResult(status=SaveStatus.BACKED_UP, backup=record, error=str(e)))
            raise RemoteSaveError(self.document_id, reason=str(e), backup=record) from e

        self.monitor.report_remote_success()
        self._clear_backup()
        self.context.last_saved_location = location
        # The remote copy is now the baseline a delimiter change re-parses
        self.context.source_text = text
        # Edits made while the write was in flight are still unsaved
        self.context.has_unsaved_changes = self.context.revision != revision
        self.notifications.dismiss(REMOTE_SAVE_FAILED)
        self.notifications.dismiss(LOCAL_BACKUP_NOTICE)

        logger.info("document_saved", document_id=self.document_id, location=location)
        return self._complete(SaveResult(status=SaveStatus.SAVED, location=location))

    # ---------- recovery ----------
    def check_for_backup(self) -> Optional[BackupRecord]:
        """Offer the stored backup, at most once per session."""
        if self.context.recovery_checked:
            return None
        self.context.recovery_checked = True

        try:
            record = self.backups.get(self.document_id)
        except BackupStoreError as e:
            logger.error("backup_check_failed", document_id=self.document_id, error=e.message)
            return None
        if record is None:
            return None

        self.context.pending_recovery = record
        self.notifications.info(
            BACKUP_RECOVERY,
            "Found a local backup. Recover it?",
            priority=NotificationPriority.HIGH,
            sticky=True,
        )
        logger.info("backup_recovery_offered", document_id=self.document_id, updated_at=str(record.updated_at))
        self.events.emit(SessionEvent.RECOVERY_OFFERED, RecoveryOffered(self.document_id, record))
        return record

    def accept_recovery(self) -> str:
        """
        Take the offered backup.

        The backup stays stored until the next confirmed remote save.

        Returns:
            The backed-up serialized text.
        """
        record = self._take_pending()
        self.context.has_unsaved_changes = True
        self.notifications.success(BACKUP_RESTORED, "Backup content restored!")
        logger.info("backup_recovery_accepted", document_id=self.document_id)
        return record.content

    def decline_recovery(self) -> None:
        """Discard the offered backup."""
        self._take_pending()
        self._clear_backup()
        logger.info("backup_recovery_declined", document_id=self.document_id)

    def _take_pending(self) -> BackupRecord:
        record = self.context.pending_recovery
        if record is None:
            raise RecoveryNotAvailableError(self.document_id)
        self.context.pending_recovery = None
        self.notifications.dismiss(BACKUP_RECOVERY)
        return record

    # ---------- backup I/O ----------
    def _write_backup(self, text: str) -> Optional[BackupRecord]:
        try:
            record = self.backups.put(self.document_id, text)
        except BackupStoreError as e:
            logger.error("backup_write_failed", document_id=self.document_id, error=e.message)
            self.notifications.error(BACKUP_WRITE_FAILED, "Could not back up changes locally.")
            return None
        self.events.emit(SessionEvent.BACKUP_WRITTEN, BackupChanged(self.document_id, record))
        return record

    def _clear_backup(self) -> None:
        try:
            removed = self.backups.delete(self.document_id)
        except BackupStoreError as e:
            logger.error("backup_clear_failed", document_id=self.document_id, error=e.message)
            return
        if removed:
            self.events.emit(SessionEvent.BACKUP_CLEARED, BackupChanged(self.document_id))

    def _complete(self, result: SaveResult) -> SaveResult:
        self.events.emit(SessionEvent.SAVE_COMPLETED, SaveCompleted(self.document_id, result))
        return result
