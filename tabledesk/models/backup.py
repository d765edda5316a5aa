"""
Backup entry model for locally persisted unsaved content.

One row per document; the row holds raw serialized tabular text, not the
structured model, so it stays readable independent of the in-memory schema.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from tabledesk.database import Base


class BackupEntry(Base):
    """
    SQLAlchemy model for a document's local backup.

    Attributes:
        key: Storage key (``<prefix><document_id>``).
        document_id: Identifier of the backed-up document.
        content: Serialized tabular text.
        updated_at: Timestamp of the latest write.
    """

    __tablename__ = "editor_backups"

    key: str = Column(String(255), primary_key=True)
    document_id: str = Column(String(255), nullable=False, index=True)
    content: str = Column(Text, nullable=False)
    updated_at: datetime = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BackupEntry(document_id='{self.document_id}', updated_at={self.updated_at})>"
