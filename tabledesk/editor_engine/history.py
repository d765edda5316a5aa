"""
Edit history manager.

Bounded undo/redo stacks of full row snapshots. Snapshots are serialized
copies, so later mutation of the live rows never changes a recorded state.
"""

from collections import deque
from typing import Deque, List, Optional, Tuple

import structlog

from tabledesk.editor_engine.models import HistorySnapshot, Row
from tabledesk.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 50


class EditHistory:
    """
    Linear undo/redo history.

    Callers record the state *before* each logical action, exactly once per
    action. Recording clears the redo stack.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ConfigurationError("history_max_depth", "History depth must be at least 1")
        self.max_depth = max_depth
        self._undo: Deque[HistorySnapshot] = deque(maxlen=max_depth)
        self._redo: Deque[HistorySnapshot] = deque(maxlen=max_depth)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def depths(self) -> Tuple[int, int]:
        """(undo depth, redo depth)."""
        return len(self._undo), len(self._redo)

    def record_before_edit(self, current_rows: List[Row]) -> None:
        """Push a copy of ``current_rows`` and invalidate any redo entries."""
        if len(self._undo) == self.max_depth:
            logger.debug("history_evicted_oldest", max_depth=self.max_depth)
        self._undo.append(HistorySnapshot.capture(current_rows))
        self._redo.clear()

    def undo(self, current_rows: List[Row]) -> Optional[List[Row]]:
        """
        Step back one action.

        Args:
            current_rows: The live rows, saved for redo.

        Returns:
            The restored rows, or None when there is nothing to undo.
        """
        if not self._undo:
            return None
        snapshot = self._undo.pop()
        self._redo.append(HistorySnapshot.capture(current_rows))
        return snapshot.restore()

    def redo(self, current_rows: List[Row]) -> Optional[List[Row]]:
        """Re-apply the most recently undone action, or return None."""
        if not self._redo:
            return None
        snapshot = self._redo.pop()
        self._undo.append(HistorySnapshot.capture(current_rows))
        return snapshot.restore()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
