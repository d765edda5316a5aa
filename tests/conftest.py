"""
Pytest configuration and fixtures.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tabledesk.config import Settings, get_settings
from tabledesk.database import Base
from tabledesk.exceptions import RemoteFetchError, RemoteStoreError
from tabledesk.models import BackupEntry  # noqa: F401
from tabledesk.services.backup_store import MemoryBackupStore, SqlBackupStore
from tabledesk.services.remote_store import ContentUrls, RemoteDocumentStore, SubmissionRecord


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class ManualClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, 0)
        self._sleepers: List[Tuple[datetime, asyncio.Future]] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.current + timedelta(seconds=seconds), future))
        await future

    async def advance(self, seconds: float) -> None:
        """Move time forward and let woken tasks run."""
        self.current += timedelta(seconds=seconds)
        due = [s for s in self._sleepers if s[0] <= self.current]
        self._sleepers = [s for s in self._sleepers if s[0] > self.current]
        for _, future in due:
            if not future.done():
                future.set_result(None)
        for _ in range(20):
            await asyncio.sleep(0)


class ScriptedProbe:
    """Liveness probe returning queued outcomes, then a default."""

    def __init__(self, default: bool = True):
        self.default = default
        self.outcomes: List[Any] = []
        self.calls = 0

    def queue(self, *outcomes: Any) -> None:
        self.outcomes.extend(outcomes)

    async def __call__(self) -> bool:
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeRemoteStore(RemoteDocumentStore):
    """In-memory RemoteDocumentStore that records every call."""

    def __init__(self, text: str = "", display_name: str = "report.pdf"):
        self.text = text
        self.display_name = display_name
        self.fail_fetch = False
        self.fail_name = False
        self.fail_writes = False
        self.fail_status = False
        self.ping_ok = True
        self.writes: List[Tuple[str, str, str]] = []
        self.status_updates: List[Dict[str, Any]] = []
        self.submissions: List[SubmissionRecord] = []

    async def fetch_content_urls(self, project_id: str, document_id: str) -> ContentUrls:
        if self.fail_fetch:
            raise RemoteFetchError("document urls", reason="unreachable")
        return ContentUrls(
            csvUrl=f"https://files.test/{project_id}/{document_id}.csv",
            pdfUrl=f"https://files.test/{project_id}/{document_id}.pdf",
        )

    async def fetch_text(self, url: str) -> str:
        return self.text

    async def write_content(self, project_id: str, document_id: str, text: str) -> str:
        if self.fail_writes:
            raise RemoteStoreError("write rejected")
        self.writes.append((project_id, document_id, text))
        return f"projects/{project_id}/{document_id}.csv"

    async def fetch_display_name(self, project_id: str, document_id: str) -> str:
        if self.fail_name:
            raise RemoteFetchError("document metadata")
        return self.display_name

    async def update_status(self, project_id: str, document_id: str, fields: Dict[str, Any]) -> None:
        if self.fail_status:
            raise RemoteStoreError("status rejected")
        self.status_updates.append(dict(fields))

    async def record_submission(self, project_id: str, document_id: str, record: SubmissionRecord) -> None:
        self.submissions.append(record)

    async def ping(self) -> bool:
        return self.ping_ok


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only."""
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def probe() -> ScriptedProbe:
    return ScriptedProbe()


@pytest.fixture
def memory_backups() -> MemoryBackupStore:
    return MemoryBackupStore(key_prefix="editor_backup_")


@pytest.fixture(scope="function")
def db_session_factory() -> Generator[sessionmaker, None, None]:
    """Create fresh tables for each test and hand out the session factory."""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = db_session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_backups(db_session_factory: sessionmaker) -> SqlBackupStore:
    return SqlBackupStore(db_session_factory, key_prefix="editor_backup_")


@pytest.fixture
def sample_csv() -> str:
    return "name,amount,code\nalpha,10,007\nbeta,2.5,A1\ngamma,-3,B2"


@pytest.fixture
def remote_store(sample_csv: str) -> FakeRemoteStore:
    return FakeRemoteStore(text=sample_csv)


@pytest.fixture(autouse=True)
def reset_singletons(tmp_path, monkeypatch):
    """Reset global singleton instances before each test for proper isolation."""
    import tabledesk.editor_engine.codec as codec_module
    import tabledesk.editor_engine.delimiter as delimiter_module
    import tabledesk.editor_engine.schema as schema_module
    import tabledesk.services.backup_store as backup_module
    import tabledesk.services.export_service as export_module
    import tabledesk.services.numeric_parser as numeric_module

    def clear():
        codec_module._codec_instance = None
        delimiter_module._inferencer_instance = None
        schema_module._builder_instance = None
        backup_module._backup_store = None
        export_module._export_service = None
        numeric_module._parser_instance = None
        get_settings.cache_clear()

    monkeypatch.setenv("TABLEDESK_BACKUP_DATABASE_URL", f"sqlite:///{tmp_path / 'backups.db'}")
    clear()
    yield
    clear()
