"""Routes for uploading PDFs and extracting page text."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from ..config import Settings, get_settings
from ..schemas.documents import (
    DocumentResource,
    DocumentUploadResponse,
    ExtractTextRequest,
    ExtractTextResponse,
)
from ..services.documents import (
    PDF_MIME_TYPE,
    DocumentError,
    DocumentNotFound,
    DocumentService,
    DocumentTooLarge,
    StoredDocument,
    UnsupportedDocumentType,
)
from ..services.extraction import ExtractionError, extract_page, fetch_pdf

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["documents"])


def get_document_service(request: Request) -> DocumentService:
    service = getattr(request.app.state, "document_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Document service unavailable")
    return service


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def _serialize_document(
    request: Request,
    service: DocumentService,
    document: StoredDocument,
) -> DocumentResource:
    content_url = str(
        request.url_for("download_document", document_id=document.document_id)
    )
    return DocumentResource(
        document_id=document.document_id,
        filename=document.filename,
        size_bytes=document.size_bytes,
        url=service.durable_url(document, fallback=content_url),
        content_url=content_url,
        uploaded_at=document.uploaded_at.isoformat(),
    )


@router.post(
    "/uploads",
    response_model=DocumentUploadResponse,
    status_code=201,
    response_model_by_alias=False,
)
async def upload_document(
    request: Request,
    service: DocumentService = Depends(get_document_service),
    file: UploadFile = File(...),
) -> DocumentUploadResponse:
    try:
        document = await service.save_upload(file)
    except UnsupportedDocumentType as exc:
        raise HTTPException(status_code=415, detail=f"Unsupported document type: {exc}") from exc
    except DocumentTooLarge as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except DocumentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return DocumentUploadResponse(
        document=_serialize_document(request, service, document)
    )


@router.get("/uploads/{document_id}/content", name="download_document")
async def download_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> FileResponse:
    try:
        document = service.resolve(document_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc

    return FileResponse(
        document.path,
        media_type=PDF_MIME_TYPE,
        headers={
            "Cache-Control": "private, max-age=0, must-revalidate",
            "Content-Disposition": f"inline; filename=\"{document.filename}\"",
        },
    )


async def load_pdf_bytes(
    service: DocumentService,
    settings: Settings,
    *,
    document_id: str | None,
    pdf_url: str | None,
) -> bytes:
    """Read a stored document, or download one by URL."""

    if document_id:
        return await service.read_bytes(document_id)
    if pdf_url:
        return await fetch_pdf(
            pdf_url,
            timeout=settings.pdf_fetch_timeout_seconds,
            max_bytes=settings.documents_max_size_bytes,
        )
    raise ExtractionError("Either documentId or pdfUrl is required")


@router.post("/extract-pdf-text", response_model=ExtractTextResponse)
async def extract_pdf_text(
    payload: ExtractTextRequest,
    service: DocumentService = Depends(get_document_service),
    settings: Settings = Depends(get_app_settings),
) -> ExtractTextResponse:
    try:
        pdf_bytes = await load_pdf_bytes(
            service,
            settings,
            document_id=payload.document_id,
            pdf_url=payload.pdf_url,
        )
        page = await asyncio.to_thread(extract_page, pdf_bytes, payload.page_number)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    except ExtractionError as exc:
        logger.info("Text extraction failed: %s", exc)
        raise HTTPException(
            status_code=422,
            detail={"error": "Failed to extract text from PDF", "details": str(exc)},
        ) from exc

    return ExtractTextResponse(
        text=page.text,
        pageNumber=page.page_number,
        pageWidth=page.page_width,
        pageHeight=page.page_height,
        pageCount=page.page_count,
    )


__all__ = ["get_app_settings", "get_document_service", "load_pdf_bytes", "router"]
