"""
Remote Document Store.

Client for the service that owns document content and metadata. Content is
read from per-document URLs and written through a short-lived signed upload
URL: request the URL, PUT the serialized text, keep the stored path.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from tabledesk.config import get_settings
from tabledesk.exceptions import RemoteFetchError, RemoteStoreError

logger = structlog.get_logger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


class ContentUrls(BaseModel):
    """Locations of a document's tabular content and its source document."""
    model_config = ConfigDict(populate_by_name=True)

    tabular_url: str = Field(alias="csvUrl")
    source_doc_url: Optional[str] = Field(default=None, alias="pdfUrl")


class SignedUpload(BaseModel):
    """Write grant returned by the store."""
    model_config = ConfigDict(populate_by_name=True)

    signed_url: str = Field(alias="signedUrl")
    stored_path: str = Field(alias="gcsFilePath")


class SubmissionRecord(BaseModel):
    """Audit entry recorded when a document is submitted."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    user_name: str = Field(default="Unknown", alias="userName")
    file_name: str = Field(default="Document", alias="fileName")
    file_url: str = Field(default="", alias="fileUrl")
    company_id: Optional[str] = Field(default=None, alias="companyId")


class RemoteDocumentStore(ABC):
    """Abstract remote document store."""

    @abstractmethod
    async def fetch_content_urls(self, project_id: str, document_id: str) -> ContentUrls:
        """Return where the document's content lives."""

    @abstractmethod
    async def fetch_text(self, url: str) -> str:
        """Download raw tabular text."""

    @abstractmethod
    async def write_content(self, project_id: str, document_id: str, text: str) -> str:
        """Store serialized text; returns the stored location."""

    @abstractmethod
    async def fetch_display_name(self, project_id: str, document_id: str) -> str:
        """Human-readable document name."""

    @abstractmethod
    async def update_status(self, project_id: str, document_id: str, fields: Dict[str, Any]) -> None:
        """Forward opaque status fields."""

    async def record_submission(self, project_id: str, document_id: str, record: SubmissionRecord) -> None:
        """Record who submitted the document. Stores without an audit log ignore this."""
        return None

    @abstractmethod
    async def ping(self) -> bool:
        """Liveness check; True when the service answers."""


class HttpRemoteDocumentStore(RemoteDocumentStore):
    """RemoteDocumentStore over HTTP."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        auth_token: Optional[str] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.remote_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.auth_token = auth_token if auth_token is not None else settings.auth_token
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialize the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        resource: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = await self.client.request(method, url, headers=self._headers(), json=data)
            response.raise_for_status()
            return response.json() if response.content else {}
        except httpx.HTTPError as e:
            logger.error("remote_request_failed", method=method, endpoint=endpoint, error=str(e))
            raise RemoteFetchError(resource, reason=str(e)) from e
        except ValueError as e:
            logger.error("remote_response_invalid", method=method, endpoint=endpoint, error=str(e))
            raise RemoteFetchError(resource, reason="invalid JSON response") from e

    async def fetch_content_urls(self, project_id: str, document_id: str) -> ContentUrls:
        payload = await self._request_json(
            "GET",
            f"projects/{project_id}/documents/{document_id}/urls",
            resource="document urls",
        )
        try:
            return ContentUrls.model_validate(payload)
        except ValueError as e:
            raise RemoteFetchError("document urls", reason=str(e)) from e

    async def fetch_text(self, url: str) -> str:
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("remote_content_fetch_failed", error=str(e))
            raise RemoteFetchError("document content", reason=str(e)) from e
        return response.text

    async def write_content(self, project_id: str, document_id: str, text: str) -> str:
        grant_payload = await self._request_json(
            "POST",
            "documents/update",
            resource="upload url",
            data={"projectId": project_id, "fileId": document_id},
        )
        try:
            grant = SignedUpload.model_validate(grant_payload)
        except ValueError as e:
            raise RemoteStoreError(
                "Store returned an invalid upload grant",
                details={"document_id": document_id},
            ) from e

        try:
            response = await self.client.put(
                grant.signed_url,
                content=text.encode("utf-8"),
                headers={"Content-Type": CSV_MEDIA_TYPE},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("remote_upload_failed", document_id=document_id, error=str(e))
            raise RemoteStoreError(
                "Upload to signed URL failed",
                details={"document_id": document_id, "reason": str(e)},
            ) from e

        logger.info("remote_content_written", document_id=document_id, path=grant.stored_path)
        return grant.stored_path

    async def fetch_display_name(self, project_id: str, document_id: str) -> str:
        payload = await self._request_json(
            "GET",
            f"projects/{project_id}/documents/{document_id}",
            resource="document metadata",
        )
        document = payload.get("document") or {}
        return document.get("name") or ""

    async def update_status(self, project_id: str, document_id: str, fields: Dict[str, Any]) -> None:
        await self._request_json(
            "POST",
            f"projects/{project_id}/documents/{document_id}/status",
            resource="document status",
            data=dict(fields),
        )

    async def record_submission(self, project_id: str, document_id: str, record: SubmissionRecord) -> None:
        data = record.model_dump(by_alias=True)
        data.update({"projectId": project_id, "documentId": document_id})
        await self._request_json("POST", "submissions", resource="submission record", data=data)

    async def ping(self) -> bool:
        try:
            response = await self.client.get(f"{self.base_url}/", timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.debug("remote_ping_failed", error=str(e))
            return False
        return response.is_success
