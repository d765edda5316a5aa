"""
Custom exceptions for TableDesk.

Provides a hierarchy of exceptions with error codes for consistent error handling.
Only DocumentLoadError is meant to reach the presentation layer; everything
else is absorbed by the component that owns the affected resource.
"""
from typing import Optional, Dict, Any


class TableDeskError(Exception):
    """
    Base exception for all TableDesk errors.

    Attributes:
        error_code: Unique error code (e.g., TDK-001)
        message: Human-readable error message
        details: Additional error context
        recoverable: Whether the session can keep going after this error
    """
    error_code: str = "TDK-000"
    recoverable: bool = True

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging or display."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# Format Errors (TDK-1XX)
class FormatAmbiguityError(TableDeskError):
    """Delimiter could not be inferred with confidence."""
    error_code = "TDK-100"

    def __init__(self, fallback: str = ",", **kwargs):
        message = "Could not detect the delimiter; falling back to a default"
        super().__init__(message, details={"fallback": fallback}, **kwargs)


class ParseError(TableDeskError):
    """Tabular text could not be parsed at all."""
    error_code = "TDK-101"

    def __init__(self, message: str = "Failed to parse tabular text", **kwargs):
        super().__init__(message, **kwargs)


# Remote Store Errors (TDK-2XX)
class RemoteStoreError(TableDeskError):
    """A call against the remote document store failed."""
    error_code = "TDK-200"

    def __init__(self, message: str = "Remote document store is unavailable", **kwargs):
        super().__init__(message, **kwargs)


class RemoteSaveError(RemoteStoreError):
    """Remote write failed; the content was backed up locally instead."""
    error_code = "TDK-201"

    def __init__(self, document_id: str, reason: str = "", backup=None, **kwargs):
        message = "Save failed. Changes backed up locally."
        self.backup = backup
        super().__init__(
            message,
            details={"document_id": document_id, "reason": reason},
            **kwargs,
        )


class RemoteFetchError(RemoteStoreError):
    """Remote read failed."""
    error_code = "TDK-202"

    def __init__(self, resource: str, reason: str = "", **kwargs):
        message = f"Failed to fetch {resource}"
        super().__init__(message, details={"resource": resource, "reason": reason}, **kwargs)


class DocumentLoadError(RemoteStoreError):
    """Initial document content could not be loaded; the session cannot start."""
    error_code = "TDK-203"
    recoverable = False

    def __init__(self, document_id: str, reason: str = "", **kwargs):
        message = "Error fetching document"
        super().__init__(
            message,
            details={"document_id": document_id, "reason": reason},
            **kwargs,
        )


# Local Backup Errors (TDK-3XX)
class BackupStoreError(TableDeskError):
    """Local backup storage operation failed."""
    error_code = "TDK-300"

    def __init__(self, message: str = "Local backup storage failed", **kwargs):
        super().__init__(message, **kwargs)


class RecoveryNotAvailableError(TableDeskError):
    """No recovery prompt is outstanding for this document."""
    error_code = "TDK-301"

    def __init__(self, document_id: str, **kwargs):
        message = f"No backup recovery pending for document {document_id}"
        super().__init__(message, details={"document_id": document_id}, **kwargs)


# Session Errors (TDK-4XX)
class SessionStateError(TableDeskError):
    """Operation not valid in the current session state."""
    error_code = "TDK-400"

    def __init__(self, message: str = "Session is not ready", **kwargs):
        super().__init__(message, **kwargs)


# Configuration Errors (TDK-9XX)
class ConfigurationError(TableDeskError):
    """Invalid configuration value."""
    error_code = "TDK-900"
    recoverable = False

    def __init__(self, setting: str, message: str = None, **kwargs):
        msg = message or f"Invalid configuration for '{setting}'"
        super().__init__(msg, details={"setting": setting}, **kwargs)
