"""
Data structures for the TableDesk editing engine.

Implements the editable in-memory state and the records exchanged between
engine components:
- Row / ColumnDef / DocumentModel (the editable table)
- HistorySnapshot (serialized row state for undo/redo)
- ConnectivityState / ConnectivityStatus
- BackupRecord, SaveResult
- UserIdentity (read-only claims from the identity provider)
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from tabledesk.services.numeric_parser import get_numeric_parser

Scalar = Union[str, int, float]
Row = Dict[str, Scalar]

# Separator that path-style field addressing treats as nesting
PATH_SEPARATOR = "."


class ValueKind(str, Enum):
    """Column value kinds."""
    NUMBER = "number"
    TEXT = "text"


class ConnectivityState(str, Enum):
    """Connection confidence levels."""
    ONLINE = "online"
    OFFLINE = "offline"      # Network reported down
    DEGRADED = "degraded"    # Network up, but remote service unreachable


class SaveStatus(str, Enum):
    """Outcome of a save attempt."""
    SAVED = "saved"            # Confirmed by the remote store
    LOCAL_ONLY = "local_only"  # Offline; written to local backup
    BACKED_UP = "backed_up"    # Remote write failed; written to local backup


# =============================================================================
# Table Model
# =============================================================================

def resolve_field_path(row: Row, path: str) -> Any:
    """Read ``path`` from ``row``, treating separators as nested access."""
    current: Any = row
    for part in path.split(PATH_SEPARATOR):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def assign_field_path(row: Row, path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating nested dicts as needed."""
    parts = path.split(PATH_SEPARATOR)
    current: Any = row
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


@dataclass
class ColumnDef:
    """
    An editable column.

    Exactly one of ``field_name`` (direct addressing) or ``col_id`` (literal key
    with bound accessors) is set. Accessor columns exist for names containing
    the path separator, so ``meta.source`` reads ``row["meta.source"]`` and
    never ``row["meta"]["source"]``.
    """
    key: str
    label: str
    value_kind: ValueKind = ValueKind.TEXT
    field_name: Optional[str] = None
    col_id: Optional[str] = None
    value_getter: Optional[Callable[[Row], Any]] = field(default=None, repr=False, compare=False)
    value_setter: Optional[Callable[[Row, Any], bool]] = field(default=None, repr=False, compare=False)

    @property
    def uses_accessors(self) -> bool:
        return self.col_id is not None

    @property
    def identifier(self) -> str:
        """Key used to address this column in serialized output."""
        return self.col_id or self.field_name or self.label

    @property
    def is_numeric(self) -> bool:
        return self.value_kind == ValueKind.NUMBER

    def get(self, row: Optional[Row]) -> Any:
        if row is None:
            return None
        if self.value_getter is not None:
            return self.value_getter(row)
        return resolve_field_path(row, self.field_name or self.key)

    def set(self, row: Optional[Row], value: Any) -> bool:
        if row is None:
            return False
        if self.value_setter is not None:
            return self.value_setter(row, value)
        assign_field_path(row, self.field_name or self.key, value)
        return True

    def parse_input(self, raw: Any) -> Scalar:
        """Convert user input for this column; numeric columns coerce literals."""
        if raw is None:
            return ""
        if not self.is_numeric or not isinstance(raw, str):
            return raw
        return get_numeric_parser().coerce(raw)


@dataclass
class DocumentModel:
    """The editable in-memory table."""
    columns: List[ColumnDef] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_keys(self) -> List[str]:
        return [c.key for c in self.columns]

    def column(self, key: str) -> Optional[ColumnDef]:
        for column in self.columns:
            if column.key == key:
                return column
        return None

    def value(self, row: Row, key: str) -> Scalar:
        """Read a cell; missing keys read as empty string."""
        column = self.column(key)
        value = column.get(row) if column else row.get(key)
        return "" if value is None else value

    def blank_row(self) -> Row:
        return {c.identifier: "" for c in self.columns}


@dataclass(frozen=True)
class HistorySnapshot:
    """Immutable serialized copy of row state."""
    payload: str
    row_count: int

    @classmethod
    def capture(cls, rows: List[Row]) -> "HistorySnapshot":
        return cls(payload=json.dumps(rows, ensure_ascii=False), row_count=len(rows))

    def restore(self) -> List[Row]:
        """Return a fresh, independent copy of the captured rows."""
        return json.loads(self.payload)


# =============================================================================
# Connectivity and Persistence
# =============================================================================

@dataclass(frozen=True)
class ConnectivityStatus:
    """Current connectivity state plus the last time the remote was reachable."""
    state: ConnectivityState
    last_known_good: Optional[datetime] = None
    submit_enabled: bool = True

    @property
    def is_offline(self) -> bool:
        return self.state == ConnectivityState.OFFLINE


@dataclass
class BackupRecord:
    """Locally persisted serialized content for one document."""
    document_id: str
    content: str
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SaveResult:
    """Result of a save attempt."""
    status: SaveStatus
    location: Optional[str] = None
    backup: Optional[BackupRecord] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == SaveStatus.SAVED


# =============================================================================
# Identity
# =============================================================================

@dataclass(frozen=True)
class UserIdentity:
    """Identity claims consumed by the session. No authorization is derived here."""
    user_id: Optional[str] = None
    display_name: str = "Unknown"
    company_id: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_claims(cls, user_id: Optional[str], claims: Dict[str, Any], profile: Optional[Dict[str, Any]] = None) -> "UserIdentity":
        profile = profile or {}
        display_name = (
            profile.get("displayName")
            or profile.get("name")
            or profile.get("email")
            or "Unknown"
        )
        return cls(
            user_id=user_id,
            display_name=display_name,
            company_id=claims.get("companyId"),
            role=claims.get("roleName") or claims.get("role"),
        )
