"""
Export Service.

Packages serialized tabular content for download. Archive assembly is left
to callers; this only names and encodes a single file.
"""
import re
from dataclasses import dataclass
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_EXPORT_NAME = "document"
CSV_EXTENSION = ".csv"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

# Source-document extensions replaced by .csv on export
_SOURCE_EXTENSION = re.compile(r"\.(pdf|csv)$", re.IGNORECASE)


@dataclass
class ExportPayload:
    """A file ready for download."""
    filename: str
    content: bytes
    media_type: str = CSV_MEDIA_TYPE

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def converted_filename(name: Optional[str]) -> str:
    """
    Name of the exported file for a document.

    ``report.pdf`` becomes ``report.csv``; a blank name becomes ``document.csv``.
    """
    base = _SOURCE_EXTENSION.sub("", (name or "").strip())
    return f"{base or DEFAULT_EXPORT_NAME}{CSV_EXTENSION}"


class ExportService:
    """Builds download payloads from serialized text."""

    def build_payload(self, display_name: Optional[str], text: str) -> ExportPayload:
        filename = converted_filename(display_name)
        payload = ExportPayload(filename=filename, content=text.encode("utf-8"))
        logger.info("export_payload_built", filename=filename, size=payload.size_bytes)
        return payload


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get singleton ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
