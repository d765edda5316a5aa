"""
Session event emission.

A small set of named events with typed payloads. Handlers run synchronously
in subscription order on the caller's event loop turn.

Ordering guarantees:
- HISTORY_CHANGED is emitted after the snapshot is recorded and before
  MODEL_CHANGED for the same action.
- BACKUP_WRITTEN / BACKUP_CLEARED precede SAVE_COMPLETED for the same save.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, DefaultDict, List, Optional

import structlog

from tabledesk.editor_engine.models import (
    BackupRecord,
    ConnectivityStatus,
    SaveResult,
)

logger = structlog.get_logger(__name__)


class SessionEvent(str, Enum):
    """Named session events."""
    MODEL_CHANGED = "model_changed"
    HISTORY_CHANGED = "history_changed"
    CONNECTIVITY_CHANGED = "connectivity_changed"
    SAVE_COMPLETED = "save_completed"
    BACKUP_WRITTEN = "backup_written"
    BACKUP_CLEARED = "backup_cleared"
    RECOVERY_OFFERED = "recovery_offered"
    NOTICE_POSTED = "notice_posted"


@dataclass(frozen=True)
class ModelChanged:
    reason: str  # edit, add_row, delete_rows, undo, redo, reparse, recovery, load
    row_count: int
    has_unsaved_changes: bool


@dataclass(frozen=True)
class HistoryChanged:
    undo_depth: int
    redo_depth: int


@dataclass(frozen=True)
class ConnectivityChanged:
    previous: Optional[ConnectivityStatus]
    current: ConnectivityStatus
    source: str  # network_event, probe, remote_call


@dataclass(frozen=True)
class SaveCompleted:
    document_id: str
    result: SaveResult


@dataclass(frozen=True)
class BackupChanged:
    document_id: str
    record: Optional[BackupRecord] = None


@dataclass(frozen=True)
class RecoveryOffered:
    document_id: str
    record: BackupRecord


Handler = Callable[[SessionEvent, Any], None]


class EventBus:
    """Synchronous publish/subscribe for session events."""

    def __init__(self):
        self._handlers: DefaultDict[SessionEvent, List[Handler]] = defaultdict(list)

    def subscribe(self, event: SessionEvent, handler: Handler) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def emit(self, event: SessionEvent, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(event, payload)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event=event.value,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )
