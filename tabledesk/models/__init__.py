"""Models package."""
from tabledesk.models.backup import BackupEntry

__all__ = ["BackupEntry"]
