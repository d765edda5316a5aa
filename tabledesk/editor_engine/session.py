"""
Editing session.

Owns the DocumentModel for one document and wires the codec, history,
connectivity monitor and persistence coordinator together. Every user-level
mutation records history exactly once, before the rows change, and marks the
session unsaved.

Failure policy: only DocumentLoadError reaches the caller. Save, submit and
recovery problems are reported through results and notices.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from tabledesk.config import Settings, get_settings
from tabledesk.editor_engine.codec import (
    TabularCodec,
    get_tabular_codec,
    is_auto,
)
from tabledesk.editor_engine.connectivity import ConnectivityMonitor, SystemClock
from tabledesk.editor_engine.context import SessionContext
from tabledesk.editor_engine.delimiter import DelimiterInferencer, get_delimiter_inferencer
from tabledesk.editor_engine.events import (
    EventBus,
    HistoryChanged,
    ModelChanged,
    SessionEvent,
)
from tabledesk.editor_engine.history import EditHistory
from tabledesk.editor_engine.models import (
    ConnectivityStatus,
    DocumentModel,
    Row,
    SaveResult,
    SaveStatus,
    UserIdentity,
)
from tabledesk.editor_engine.persistence import PersistenceCoordinator
from tabledesk.exceptions import (
    DocumentLoadError,
    FormatAmbiguityError,
    RecoveryNotAvailableError,
    RemoteSaveError,
    SessionStateError,
)
from tabledesk.logging_config import bind_session_id
from tabledesk.services.backup_store import BackupStore, get_backup_store
from tabledesk.services.export_service import ExportPayload, ExportService, get_export_service
from tabledesk.services.notification_service import (
    DELIMITER_NOTICE,
    FORMAT_AMBIGUITY,
    LOAD_FAILED,
    SUBMIT_BLOCKED,
    SUBMIT_RESULT,
    Notice,
    NotificationCenter,
)
from tabledesk.services.numeric_parser import get_numeric_parser
from tabledesk.services.remote_store import RemoteDocumentStore, SubmissionRecord

logger = structlog.get_logger(__name__)

RowRef = Union[int, Row]
CellChange = Tuple[RowRef, str, Any]

DEFAULT_TITLE = "Document"


class EditingSession:
    """
    One user editing one document.

    Usage:
        session = EditingSession("proj-1", "doc-1", store, backups)
        await session.load()
        session.edit_cell(0, "amount", "12.5")
        result = await session.save()
    """

    def __init__(
        self,
        project_id: str,
        document_id: str,
        store: RemoteDocumentStore,
        backups: Optional[BackupStore] = None,
        identity: Optional[UserIdentity] = None,
        codec: Optional[TabularCodec] = None,
        inferencer: Optional[DelimiterInferencer] = None,
        exporter: Optional[ExportService] = None,
        events: Optional[EventBus] = None,
        clock: Optional[SystemClock] = None,
        settings: Optional[Settings] = None,
        network_online: bool = True,
    ):
        settings = settings or get_settings()
        self.store = store
        self.events = events or EventBus()
        self.notifications = NotificationCenter(on_post=self._on_notice)
        self.codec = codec or get_tabular_codec()
        self.inferencer = inferencer or get_delimiter_inferencer()
        self.exporter = exporter or get_export_service()

        self.context = SessionContext(
            document_id=document_id,
            project_id=project_id,
            history=EditHistory(settings.history_max_depth),
            identity=identity or UserIdentity(),
        )
        self.model = DocumentModel()
        self.loaded = False

        self.monitor = ConnectivityMonitor(
            probe=store.ping,
            clock=clock,
            events=self.events,
            notifications=self.notifications,
            probe_interval=settings.probe_interval_seconds,
            probe_timeout=settings.probe_timeout_seconds,
            network_online=network_online,
        )
        self.monitor.has_pending = lambda: self.context.has_unsaved_changes
        self.monitor.flush_pending = self._flush_pending

        self.persistence = PersistenceCoordinator(
            context=self.context,
            store=store,
            backups=backups if backups is not None else get_backup_store(),
            monitor=self.monitor,
            codec=self.codec,
            notifications=self.notifications,
            events=self.events,
        )

    # ---------- read-only views ----------
    @property
    def document_id(self) -> str:
        return self.context.document_id

    @property
    def has_unsaved_changes(self) -> bool:
        return self.context.has_unsaved_changes

    @property
    def connectivity(self) -> ConnectivityStatus:
        return self.monitor.status

    @property
    def delimiter(self) -> str:
        return self.context.resolved_delimiter

    @property
    def can_undo(self) -> bool:
        return self.context.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.context.history.can_redo

    @property
    def title(self) -> str:
        name = self.context.display_name or DEFAULT_TITLE
        if self.context.has_unsaved_changes:
            return f"* {name} (Unsaved changes)"
        return name

    @property
    def leave_requires_confirmation(self) -> bool:
        """True when leaving now could lose work."""
        return self.context.has_unsaved_changes or self.monitor.is_offline

    @property
    def recovery_pending(self) -> bool:
        return self.context.pending_recovery is not None

    # ---------- lifecycle ----------
    async def load(self) -> DocumentModel:
        """
        Fetch and parse the document, then offer any local backup.

        Raises:
            DocumentLoadError: The content could not be fetched.
        """
        bind_session_id(self.context.session_id)
        project_id, document_id = self.context.project_id, self.context.document_id

        try:
            urls = await self.store.fetch_content_urls(project_id, document_id)
            text = await self.store.fetch_text(urls.tabular_url)
        except Exception as e:
            logger.error("document_load_failed", document_id=document_id, error=str(e))
            self.notifications.error(LOAD_FAILED, "Error fetching document", sticky=True)
            raise DocumentLoadError(document_id, reason=str(e)) from e

        try:
            display_name = await self.store.fetch_display_name(project_id, document_id)
        except Exception as e:
            logger.warning("display_name_fetch_failed", document_id=document_id, error=str(e))
            display_name = ""

        self.context.source_doc_url = urls.source_doc_url
        self.context.display_name = display_name or ""
        self.context.source_text = text
        self.context.has_unsaved_changes = False
        self._apply_source(text, self.context.delimiter_choice, reason="load")
        self.loaded = True

        logger.info(
            "document_loaded",
            document_id=document_id,
            rows=self.model.row_count,
            columns=len(self.model.columns),
            delimiter=self.context.resolved_delimiter,
        )
        self.persistence.check_for_backup()
        return self.model

    def start(self) -> None:
        """Start the liveness probe."""
        self.monitor.start()

    async def close(self) -> None:
        await self.monitor.stop()
        logger.info("session_closed", document_id=self.document_id, unsaved=self.has_unsaved_changes)

    # ---------- editing ----------
    def edit_cell(self, row: RowRef, column_key: str, raw_value: Any) -> bool:
        """Edit one cell. Returns False when nothing changed."""
        return self.edit_cells([(row, column_key, raw_value)]) > 0

    def edit_cells(self, changes: Iterable[CellChange]) -> int:
        """
        Apply several cell edits as one undoable action.

        Returns:
            Number of cells whose value actually changed.
        """
        self._require_loaded()
        effective = []
        for row_ref, column_key, raw_value in changes:
            row = self._resolve_row(row_ref)
            column = self.model.column(column_key)
            if row is None or column is None:
                logger.debug("edit_target_missing", column=column_key)
                continue
            value = column.parse_input(raw_value)
            if column.get(row) == value:
                continue
            effective.append((row, column, value))

        if not effective:
            return 0

        self._record_history()
        for row, column, value in effective:
            column.set(row, value)
        self._model_changed("edit")
        return len(effective)

    def add_row(self) -> Row:
        """Append a blank row."""
        self._require_loaded()
        row = self.model.blank_row()
        self._record_history()
        self.model.rows.append(row)
        self._model_changed("add_row")
        return row

    def delete_rows(self, rows: Sequence[Row]) -> int:
        """Remove the given row objects (matched by identity)."""
        self._require_loaded()
        targets = {id(r) for r in rows or []}
        remaining = [r for r in self.model.rows if id(r) not in targets]
        removed = len(self.model.rows) - len(remaining)
        if not removed:
            return 0

        self._record_history()
        self.model.rows = remaining
        self._model_changed("delete_rows")
        return removed

    def undo(self) -> bool:
        restored = self.context.history.undo(self.model.rows)
        if restored is None:
            return False
        self.model.rows = restored
        self._emit_history()
        self._model_changed("undo")
        return True

    def redo(self) -> bool:
        restored = self.context.history.redo(self.model.rows)
        if restored is None:
            return False
        self.model.rows = restored
        self._emit_history()
        self._model_changed("redo")
        return True

    def change_delimiter(self, choice: str) -> bool:
        """
        Re-parse the source text with a different delimiter.

        The source text is the loaded content, replaced by the serialized
        table on every confirmed save and by recovered backup content. Edits
        not yet in the source are discarded and history is reset; the unsaved
        flag is left as it was.
        """
        self._require_loaded()
        if not is_auto(choice) and len(choice) != 1:
            self.notifications.warning(DELIMITER_NOTICE, f"Unsupported delimiter: {choice!r}")
            return False

        discarded = self.context.has_unsaved_changes and self.context.history.can_undo
        self._apply_source(self.context.source_text, choice, reason="reparse")
        if discarded:
            self.notifications.warning(
                DELIMITER_NOTICE,
                "Delimiter changed. Unsaved edits were discarded.",
            )
        logger.info("delimiter_changed", choice=choice, resolved=self.context.resolved_delimiter)
        return True

    # ---------- recovery ----------
    def accept_recovery(self) -> bool:
        """Replace the table with the offered local backup."""
        try:
            text = self.persistence.accept_recovery()
        except RecoveryNotAvailableError as e:
            logger.warning("recovery_not_pending", document_id=self.document_id, error=e.message)
            return False
        self.context.source_text = text
        self._apply_source(text, self.context.delimiter_choice, reason="recovery")
        return True

    def decline_recovery(self) -> bool:
        try:
            self.persistence.decline_recovery()
        except RecoveryNotAvailableError as e:
            logger.warning("recovery_not_pending", document_id=self.document_id, error=e.message)
            return False
        return True

    # ---------- persistence ----------
    async def save(self) -> SaveResult:
        """Save now. A failed remote write comes back as BACKED_UP."""
        self._require_loaded()
        try:
            return await self.persistence.save(self.model, self.context.resolved_delimiter)
        except RemoteSaveError as e:
            return SaveResult(status=SaveStatus.BACKED_UP, backup=e.backup, error=e.details.get("reason"))

    async def submit(self, status_fields: Optional[Dict[str, Any]] = None) -> bool:
        """
        Save, then forward ``status_fields`` to the store.

        Refused while offline or while changes remain unsaved.
        """
        result = await self.save()

        if self.monitor.is_offline or not self.monitor.submit_enabled:
            self.notifications.error(SUBMIT_BLOCKED, "You are offline. Cannot submit now.")
            return False
        if self.context.has_unsaved_changes:
            self.notifications.error(SUBMIT_BLOCKED, "Please ensure changes are saved before submitting.")
            return False

        identity = self.context.identity
        record = SubmissionRecord(
            userId=identity.user_id,
            userName=identity.display_name,
            fileName=self.context.display_name or DEFAULT_TITLE,
            fileUrl=result.location or self.context.last_saved_location or "",
            companyId=identity.company_id,
        )
        try:
            await self.store.record_submission(self.context.project_id, self.document_id, record)
            await self.store.update_status(self.context.project_id, self.document_id, dict(status_fields or {}))
        except Exception as e:
            logger.error("submit_failed", document_id=self.document_id, error=str(e))
            self.monitor.report_remote_failure()
            self.notifications.error(SUBMIT_RESULT, "Failed to update document status.")
            return False

        self.notifications.dismiss(SUBMIT_BLOCKED)
        self.notifications.success(SUBMIT_RESULT, "Document status updated successfully!")
        logger.info("document_submitted", document_id=self.document_id, fields=sorted((status_fields or {}).keys()))
        return True

    def download(self) -> ExportPayload:
        """Serialize the current table for download."""
        self._require_loaded()
        text = self.codec.serialize(self.model.columns, self.model.rows, self.context.resolved_delimiter)
        return self.exporter.build_payload(self.context.display_name, text)

    def quick_filter(self, text: str) -> List[Row]:
        """Rows where any cell contains ``text``, ignoring case."""
        needle = (text or "").strip().lower()
        if not needle:
            return list(self.model.rows)

        numbers = get_numeric_parser()
        matches = []
        for row in self.model.rows:
            for column in self.model.columns:
                if needle in numbers.format(self.model.value(row, column.key)).lower():
                    matches.append(row)
                    break
        return matches

    # ---------- network events ----------
    async def handle_network_offline(self) -> None:
        self.monitor.handle_network_offline()

    async def handle_network_online(self) -> bool:
        return await self.monitor.handle_network_online()

    async def _flush_pending(self) -> bool:
        if not self.loaded:
            return True
        result = await self.save()
        return result.confirmed

    # ---------- internals ----------
    def _apply_source(self, text: str, choice: str, reason: str) -> None:
        if is_auto(choice):
            report = self.inferencer.infer_with_report(text)
            delimiter = report.delimiter
            try:
                report.raise_if_ambiguous()
                self.notifications.dismiss(FORMAT_AMBIGUITY)
            except FormatAmbiguityError as e:
                logger.warning("delimiter_fallback_used", document_id=self.document_id, **e.details)
                self.notifications.warning(
                    FORMAT_AMBIGUITY,
                    "Could not detect the delimiter. Using comma; pick another delimiter if columns look wrong.",
                )
        else:
            delimiter = choice
            self.notifications.dismiss(FORMAT_AMBIGUITY)

        result = self.codec.parse(text, delimiter)
        self.model = DocumentModel(columns=result.columns, rows=result.rows)
        self.context.delimiter_choice = choice
        self.context.resolved_delimiter = delimiter
        self.context.parse_warnings = result.warnings
        self.context.history.clear()
        self._emit_history()
        self.events.emit(
            SessionEvent.MODEL_CHANGED,
            ModelChanged(reason, self.model.row_count, self.context.has_unsaved_changes),
        )

    def _resolve_row(self, ref: RowRef) -> Optional[Row]:
        if isinstance(ref, int):
            if 0 <= ref < len(self.model.rows):
                return self.model.rows[ref]
            return None
        for row in self.model.rows:
            if row is ref:
                return row
        return None

    def _record_history(self) -> None:
        self.context.history.record_before_edit(self.model.rows)
        self._emit_history()

    def _emit_history(self) -> None:
        undo_depth, redo_depth = self.context.history.depths
        self.events.emit(SessionEvent.HISTORY_CHANGED, HistoryChanged(undo_depth, redo_depth))

    def _model_changed(self, reason: str) -> None:
        self.context.mark_changed()
        self.events.emit(
            SessionEvent.MODEL_CHANGED,
            ModelChanged(reason, self.model.row_count, True),
        )

    def _on_notice(self, notice: Notice) -> None:
        self.events.emit(SessionEvent.NOTICE_POSTED, notice)

    def _require_loaded(self) -> None:
        if not self.loaded:
            raise SessionStateError("Document has not been loaded")
