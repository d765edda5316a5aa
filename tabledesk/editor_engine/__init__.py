"""
TableDesk Editor Engine - parse, edit and persist one tabular document.

Key Principles:
1. Numbers are typed only when the text is an unambiguous numeric literal
2. Every logical edit is one undo step
3. Unsaved work always has a local copy when the remote store is unreachable
4. Inference is deterministic; the same text always yields the same table

The session itself lives in ``tabledesk.editor_engine.session``.
"""

from tabledesk.editor_engine.codec import ParseResult, TabularCodec, get_tabular_codec
from tabledesk.editor_engine.delimiter import DelimiterInferencer, get_delimiter_inferencer
from tabledesk.editor_engine.history import EditHistory
from tabledesk.editor_engine.models import (
    ColumnDef,
    ConnectivityState,
    DocumentModel,
    SaveResult,
    SaveStatus,
    ValueKind,
)

__version__ = "1.0.0"
__all__ = [
    "ColumnDef",
    "ConnectivityState",
    "DelimiterInferencer",
    "DocumentModel",
    "EditHistory",
    "ParseResult",
    "SaveResult",
    "SaveStatus",
    "TabularCodec",
    "ValueKind",
    "get_delimiter_inferencer",
    "get_tabular_codec",
]
