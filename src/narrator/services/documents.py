"""Storage for uploaded PDF documents."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import Optional
from uuid import uuid4

from fastapi import UploadFile

from ..utils.filenames import build_storage_name
from . import gcs

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
_PDF_MAGIC = b"%PDF"
_DOCUMENT_ID = re.compile(r"^[0-9a-f]{32}$")


class DocumentError(RuntimeError):
    """Base error raised for document failures."""


class UnsupportedDocumentType(DocumentError):
    """Raised when the upload is not a PDF."""


class DocumentTooLarge(DocumentError):
    """Raised when an uploaded file exceeds the configured limit."""


class DocumentNotFound(DocumentError):
    """Raised when a document cannot be located."""


@dataclass(frozen=True)
class StoredDocument:
    document_id: str
    filename: str
    size_bytes: int
    path: Path
    uploaded_at: datetime
    blob_name: Optional[str] = None


class DocumentService:
    """Persist uploaded PDFs on disk, mirroring them to GCS when configured."""

    def __init__(
        self,
        directory: Path,
        *,
        max_size_bytes: int,
        url_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._directory = directory
        self._max_size_bytes = max_size_bytes
        self._url_ttl = url_ttl

    async def save_upload(self, upload: UploadFile) -> StoredDocument:
        """Validate and persist an uploaded PDF."""

        mime_type = (upload.content_type or "application/octet-stream").lower()
        if mime_type != PDF_MIME_TYPE:
            await upload.close()
            raise UnsupportedDocumentType(mime_type or "unknown")

        data = await self._read_upload(upload)
        return await self.save_bytes(data, filename=upload.filename or "document.pdf")

    async def save_bytes(self, data: bytes, *, filename: str) -> StoredDocument:
        if not data:
            raise DocumentError("Uploaded file was empty")
        if len(data) > self._max_size_bytes:
            raise DocumentTooLarge(
                f"Document exceeded {self._max_size_bytes} bytes limit"
            )
        if not data.startswith(_PDF_MAGIC):
            raise UnsupportedDocumentType("file content is not a PDF")

        document_id = uuid4().hex
        storage_name = build_storage_name(document_id, ".pdf", filename)
        path = self._directory / storage_name
        uploaded_at = datetime.now(timezone.utc)

        blob_name: Optional[str] = None
        if gcs.is_gcs_available():
            blob_name = str(PurePosixPath("documents") / storage_name)
            try:
                await asyncio.to_thread(
                    gcs.upload_bytes, blob_name, data, content_type=PDF_MIME_TYPE
                )
            except Exception as exc:
                logger.warning("GCS mirror failed for %s: %s", document_id, exc)
                blob_name = None

        document = StoredDocument(
            document_id=document_id,
            filename=filename,
            size_bytes=len(data),
            path=path,
            uploaded_at=uploaded_at,
            blob_name=blob_name,
        )
        await asyncio.to_thread(self._write, document, data)
        logger.info(
            "Stored document %s (%s, %d bytes)", document_id, filename, len(data)
        )
        return document

    def resolve(self, document_id: str) -> StoredDocument:
        if not _DOCUMENT_ID.match(document_id or ""):
            raise DocumentNotFound(document_id)
        meta_path = self._directory / f"{document_id}.json"
        if not meta_path.exists():
            raise DocumentNotFound(document_id)

        meta = json.loads(meta_path.read_text(encoding="utf-8"))
        path = self._directory / meta["storage_name"]
        if not path.exists():
            raise DocumentNotFound(document_id)
        return StoredDocument(
            document_id=document_id,
            filename=meta["filename"],
            size_bytes=int(meta["size_bytes"]),
            path=path,
            uploaded_at=datetime.fromisoformat(meta["uploaded_at"]),
            blob_name=meta.get("blob_name"),
        )

    async def read_bytes(self, document_id: str) -> bytes:
        document = self.resolve(document_id)
        return await asyncio.to_thread(document.path.read_bytes)

    def durable_url(self, document: StoredDocument, *, fallback: str) -> str:
        """Signed GCS URL for mirrored documents, ``fallback`` otherwise."""

        if document.blob_name and gcs.is_gcs_available():
            try:
                return gcs.sign_get_url(document.blob_name, expires_delta=self._url_ttl)
            except Exception as exc:
                logger.warning("Could not sign URL for %s: %s", document.document_id, exc)
        return fallback

    def _write(self, document: StoredDocument, data: bytes) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        document.path.write_bytes(data)
        meta = {
            "storage_name": document.path.name,
            "filename": document.filename,
            "size_bytes": document.size_bytes,
            "uploaded_at": document.uploaded_at.isoformat(),
            "blob_name": document.blob_name,
        }
        meta_path = self._directory / f"{document.document_id}.json"
        meta_path.write_text(json.dumps(meta, indent=2), encoding="utf-8")

    async def _read_upload(self, upload: UploadFile) -> bytes:
        chunk_size = 1024 * 1024  # 1 MiB
        size = 0
        chunks: list[bytes] = []
        try:
            while True:
                chunk = await upload.read(chunk_size)
                if not chunk:
                    break
                size += len(chunk)
                if size > self._max_size_bytes:
                    raise DocumentTooLarge(
                        f"Document exceeded {self._max_size_bytes} bytes limit"
                    )
                chunks.append(chunk)
        finally:
            await upload.close()
        return b"".join(chunks)


__all__ = [
    "DocumentError",
    "DocumentNotFound",
    "DocumentService",
    "DocumentTooLarge",
    "PDF_MIME_TYPE",
    "StoredDocument",
    "UnsupportedDocumentType",
]
