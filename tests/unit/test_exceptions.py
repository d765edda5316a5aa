"""
Unit tests for custom exceptions.

Tests exception hierarchy and error formatting.
"""
import pytest

from tabledesk.exceptions import (
    BackupStoreError,
    ConfigurationError,
    DocumentLoadError,
    FormatAmbiguityError,
    ParseError,
    RecoveryNotAvailableError,
    RemoteFetchError,
    RemoteSaveError,
    RemoteStoreError,
    SessionStateError,
    TableDeskError,
)


class TestExceptionHierarchy:
    """Tests for exception class hierarchy."""

    def test_base_exception(self):
        """Test base TableDeskError."""
        exc = TableDeskError("Test error")

        assert exc.error_code == "TDK-000"
        assert exc.message == "Test error"
        assert exc.recoverable is True

    def test_format_ambiguity_error(self):
        exc = FormatAmbiguityError(fallback=",")

        assert isinstance(exc, TableDeskError)
        assert exc.error_code == "TDK-100"
        assert exc.details == {"fallback": ","}

    def test_parse_error(self):
        assert ParseError().error_code == "TDK-101"

    def test_remote_save_error_carries_backup(self):
        """RemoteSaveError keeps the local backup it fell back to."""
        exc = RemoteSaveError("doc-1", reason="503", backup="record")

        assert isinstance(exc, RemoteStoreError)
        assert exc.error_code == "TDK-201"
        assert exc.message == "Save failed. Changes backed up locally."
        assert exc.backup == "record"
        assert exc.details == {"document_id": "doc-1", "reason": "503"}

    def test_remote_fetch_error(self):
        exc = RemoteFetchError("document urls", reason="timeout")
        assert exc.error_code == "TDK-202"
        assert "document urls" in exc.message

    def test_document_load_error_is_fatal(self):
        exc = DocumentLoadError("doc-1", reason="404")

        assert isinstance(exc, RemoteStoreError)
        assert exc.error_code == "TDK-203"
        assert exc.recoverable is False
        assert exc.message == "Error fetching document"

    def test_backup_errors(self):
        assert BackupStoreError().error_code == "TDK-300"
        assert RecoveryNotAvailableError("doc-1").error_code == "TDK-301"

    def test_session_state_error(self):
        assert SessionStateError().error_code == "TDK-400"

    def test_configuration_error(self):
        exc = ConfigurationError("probe_timeout_seconds")
        assert exc.error_code == "TDK-900"
        assert "probe_timeout_seconds" in exc.message


class TestExceptionFormatting:
    """Tests for exception serialization."""

    def test_to_dict(self):
        exc = RemoteSaveError("doc-1", reason="503")
        result = exc.to_dict()

        assert result["error"] is True
        assert result["error_code"] == "TDK-201"
        assert result["message"] == "Save failed. Changes backed up locally."
        assert result["details"]["document_id"] == "doc-1"
        assert result["recoverable"] is True

    def test_custom_error_code(self):
        exc = TableDeskError("custom", error_code="TDK-999")
        assert exc.error_code == "TDK-999"

    def test_exceptions_are_catchable_as_base(self):
        with pytest.raises(TableDeskError):
            raise DocumentLoadError("doc-1")
