"""
Per-session mutable state shared by the editing components.
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from tabledesk.editor_engine.codec import AUTO_DELIMITER, DEFAULT_DELIMITER, ParseWarning
from tabledesk.editor_engine.history import EditHistory
from tabledesk.editor_engine.models import BackupRecord, UserIdentity


@dataclass
class SessionContext:
    """
    Cross-cutting state for one document editing session.

    ``revision`` increases on every model mutation so a save can tell whether
    the rows it wrote are still the current rows once the write resolves.
    """
    document_id: str
    project_id: str
    history: EditHistory = field(default_factory=EditHistory)
    identity: UserIdentity = field(default_factory=UserIdentity)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    delimiter_choice: str = AUTO_DELIMITER
    resolved_delimiter: str = DEFAULT_DELIMITER
    source_text: str = ""
    source_doc_url: Optional[str] = None
    display_name: str = ""
    parse_warnings: List[ParseWarning] = field(default_factory=list)

    has_unsaved_changes: bool = False
    revision: int = 0
    last_saved_location: Optional[str] = None

    # Recovery is offered at most once per session
    recovery_checked: bool = False
    pending_recovery: Optional[BackupRecord] = None

    def mark_changed(self) -> None:
        self.revision += 1
        self.has_unsaved_changes = True
