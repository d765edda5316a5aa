"""
Tabular codec for delimited text.

Parses delimited text into the editable row/column model and serializes the
model back. Quoting follows standard CSV rules: quotes are doubled inside
quoted fields, and quoted fields may contain delimiters and newlines.
Malformed rows produce warnings, never a failed parse.
"""

import csv
import io
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from tabledesk.editor_engine.models import ColumnDef, Row
from tabledesk.editor_engine.schema import ColumnSchemaBuilder, get_schema_builder
from tabledesk.exceptions import ParseError
from tabledesk.services.numeric_parser import NumericLiteralParser, get_numeric_parser

logger = structlog.get_logger(__name__)

AUTO_DELIMITER = "auto"
DEFAULT_DELIMITER = ","
BOM = "\ufeff"

# Number of warnings included in the parse log entry
WARNING_LOG_SAMPLE = 3

# Quoted cells may be arbitrarily long; the csv module caps fields at 128 KiB
try:
    csv.field_size_limit(sys.maxsize)
except OverflowError:
    csv.field_size_limit(2**31 - 1)


@dataclass
class ParseWarning:
    """A row-level problem found while parsing."""
    row: int
    code: str  # TooFewFields, TooManyFields, MalformedRow
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "code": self.code, "message": self.message}


@dataclass
class ParseResult:
    """Parsed table plus the metadata the editor needs."""
    columns: List[ColumnDef]
    rows: List[Row]
    fields: List[str]
    delimiter: str
    warnings: List[ParseWarning] = field(default_factory=list)

    @property
    def field_count(self) -> int:
        return len(self.fields)


def is_auto(delimiter: Optional[str]) -> bool:
    return not delimiter or delimiter == AUTO_DELIMITER


def clean_header(name: str) -> str:
    """Trim whitespace and any byte-order mark from a header name."""
    return (name or "").strip().strip(BOM).strip()


def dedupe_headers(names: Sequence[str]) -> List[str]:
    """Rename repeated header names to ``name_1``, ``name_2``, ..."""
    seen: Dict[str, int] = {}
    taken = set(names)
    result = []
    for name in names:
        if name not in seen:
            seen[name] = 0
            result.append(name)
            continue
        count = seen[name]
        candidate = name
        while candidate in taken:
            count += 1
            candidate = f"{name}_{count}"
        seen[name] = count
        taken.add(candidate)
        result.append(candidate)
    return result


def _is_blank(record: Sequence[str]) -> bool:
    return all(not value.strip() for value in record)


def read_records(
    text: str,
    delimiter: str,
    limit: Optional[int] = None,
) -> Tuple[List[str], List[List[str]], List[ParseWarning]]:
    """
    Split delimited text into a cleaned header and raw data records.

    Blank records (every field empty or whitespace) are skipped.

    Args:
        text: Raw delimited text.
        delimiter: Single-character field separator.
        limit: Stop after this many data records.

    Returns:
        Tuple of (header names, data records, malformed-row warnings).
    """
    if not delimiter or len(delimiter) != 1:
        raise ParseError(
            "Delimiter must be a single character",
            details={"delimiter": delimiter},
        )

    text = text or ""
    if text.startswith(BOM):
        text = text[len(BOM):]

    reader = csv.reader(
        io.StringIO(text, newline=""),
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
        strict=False,
    )

    header: Optional[List[str]] = None
    records: List[List[str]] = []
    warnings: List[ParseWarning] = []

    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            warnings.append(ParseWarning(row=len(records), code="MalformedRow", message=str(e)))
            continue

        if _is_blank(record):
            continue
        if header is None:
            header = dedupe_headers([clean_header(name) for name in record])
            continue

        records.append(record)
        if limit is not None and len(records) >= limit:
            break

    return header or [], records, warnings


class TabularCodec:
    """
    Converts between delimited text and the editable table model.

    Cell values are typed individually: numeric literals become numbers,
    empty fields become empty strings, and everything else stays text.
    """

    def __init__(
        self,
        numeric_parser: Optional[NumericLiteralParser] = None,
        schema_builder: Optional[ColumnSchemaBuilder] = None,
    ):
        self._numbers = numeric_parser or get_numeric_parser()
        self._schema = schema_builder or get_schema_builder()

    def parse(self, text: str, delimiter: Optional[str] = AUTO_DELIMITER) -> ParseResult:
        """
        Parse delimited text into columns and rows.

        Args:
            text: Raw delimited text.
            delimiter: Field separator, or "auto" to infer it first.

        Returns:
            ParseResult with columns, rows and any row-level warnings.
        """
        if is_auto(delimiter):
            from tabledesk.editor_engine.delimiter import get_delimiter_inferencer
            delimiter = get_delimiter_inferencer().infer(text)

        fields, records, warnings = read_records(text, delimiter)
        rows = [self._to_row(fields, record, index, warnings) for index, record in enumerate(records)]
        columns = self._schema.build(fields, rows)

        if warnings:
            logger.warning(
                "parse_warnings",
                count=len(warnings),
                sample=[w.to_dict() for w in warnings[:WARNING_LOG_SAMPLE]],
                delimiter=delimiter,
            )

        logger.debug(
            "tabular_text_parsed",
            fields=len(fields),
            rows=len(rows),
            delimiter=delimiter,
        )

        return ParseResult(
            columns=columns,
            rows=rows,
            fields=fields,
            delimiter=delimiter,
            warnings=warnings,
        )

    def serialize(
        self,
        columns: Sequence[ColumnDef],
        rows: Sequence[Row],
        delimiter: Optional[str] = AUTO_DELIMITER,
    ) -> str:
        """
        Serialize rows to delimited text.

        Every field is quoted, lines end with a single line feed, and fields
        are taken in ``columns`` order using each column's identifier.
        """
        if is_auto(delimiter):
            delimiter = DEFAULT_DELIMITER
        if len(delimiter) != 1:
            raise ParseError(
                "Delimiter must be a single character",
                details={"delimiter": delimiter},
            )

        buffer = io.StringIO(newline="")
        writer = csv.writer(
            buffer,
            delimiter=delimiter,
            quotechar='"',
            doublequote=True,
            quoting=csv.QUOTE_ALL,
            lineterminator="\n",
        )

        writer.writerow([column.identifier for column in columns])
        for row in rows:
            writer.writerow([self._numbers.format(column.get(row)) for column in columns])

        text = buffer.getvalue()
        return text[:-1] if text.endswith("\n") else text

    def _to_row(
        self,
        fields: List[str],
        record: List[str],
        index: int,
        warnings: List[ParseWarning],
    ) -> Row:
        if len(record) < len(fields):
            warnings.append(ParseWarning(
                row=index,
                code="TooFewFields",
                message=f"Too few fields: expected {len(fields)} fields but parsed {len(record)}",
            ))
        elif len(record) > len(fields):
            warnings.append(ParseWarning(
                row=index,
                code="TooManyFields",
                message=f"Too many fields: expected {len(fields)} fields but parsed {len(record)}",
            ))

        row: Row = {}
        for name, raw in zip(fields, record):
            row[name] = self._numbers.coerce(raw) if raw != "" else ""
        return row


# Singleton instance
_codec_instance: Optional[TabularCodec] = None


def get_tabular_codec() -> TabularCodec:
    """Get singleton TabularCodec instance."""
    global _codec_instance
    if _codec_instance is None:
        _codec_instance = TabularCodec()
    return _codec_instance
