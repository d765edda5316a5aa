"""
Column schema builder.

Derives column identity and value kind from parsed field names and sampled
rows. Field names containing the path separator get accessor-bound columns so
that a header like ``meta.source`` is never read as nested data.
"""

from typing import Any, Iterable, List, Optional, Sequence

import structlog

from tabledesk.editor_engine.models import (
    PATH_SEPARATOR,
    ColumnDef,
    Row,
    ValueKind,
)

logger = structlog.get_logger(__name__)


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


class ColumnSchemaBuilder:
    """Builds ColumnDefs for the editing grid."""

    def __init__(self, separator: str = PATH_SEPARATOR):
        self.separator = separator

    def build(self, field_names: Sequence[str], sample_rows: Iterable[Row]) -> List[ColumnDef]:
        """
        Build one ColumnDef per field name.

        Args:
            field_names: Header names in file order.
            sample_rows: Parsed rows used to decide each column's value kind.

        Returns:
            ColumnDefs in the same order as ``field_names``.
        """
        rows = list(sample_rows or [])
        columns = [self._build_column(name, rows) for name in field_names or []]

        accessor_count = sum(1 for c in columns if c.uses_accessors)
        if accessor_count:
            logger.debug("accessor_columns_built", count=accessor_count)

        return columns

    def _build_column(self, field_name: str, rows: List[Row]) -> ColumnDef:
        sample = self._first_sample(field_name, rows)
        value_kind = (
            ValueKind.NUMBER
            if isinstance(sample, (int, float)) and not isinstance(sample, bool)
            else ValueKind.TEXT
        )

        if self.separator in field_name:
            return self._accessor_column(field_name, value_kind)

        return ColumnDef(
            key=field_name,
            label=field_name,
            value_kind=value_kind,
            field_name=field_name,
        )

    def _first_sample(self, field_name: str, rows: List[Row]) -> Optional[Any]:
        for row in rows:
            value = row.get(field_name)
            if _is_present(value):
                return value
        return None

    def _accessor_column(self, field_name: str, value_kind: ValueKind) -> ColumnDef:
        def getter(row: Row) -> Any:
            return row.get(field_name) if row is not None else None

        def setter(row: Row, value: Any) -> bool:
            if row is None:
                return False
            row[field_name] = value
            return True

        return ColumnDef(
            key=field_name,
            label=field_name,
            value_kind=value_kind,
            col_id=field_name,
            value_getter=getter,
            value_setter=setter,
        )


# Singleton instance
_builder_instance: Optional[ColumnSchemaBuilder] = None


def get_schema_builder() -> ColumnSchemaBuilder:
    """Get singleton ColumnSchemaBuilder instance."""
    global _builder_instance
    if _builder_instance is None:
        _builder_instance = ColumnSchemaBuilder()
    return _builder_instance
