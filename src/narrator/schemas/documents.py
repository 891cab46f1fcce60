"""Schemas for document upload and page text extraction."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class DocumentResource(BaseModel):
    """Response payload describing a stored document."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="document_id")
    filename: str
    sizeBytes: int = Field(alias="size_bytes")
    url: str
    contentUrl: str = Field(alias="content_url")
    uploadedAt: str = Field(alias="uploaded_at")


class DocumentUploadResponse(BaseModel):
    document: DocumentResource


class ExtractTextRequest(BaseModel):
    page_number: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("pageNum", "pageNumber", "page_number"),
    )
    pdf_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("pdfUrl", "pdf_url"),
    )
    document_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("documentId", "document_id"),
    )


class ExtractTextResponse(BaseModel):
    text: str
    pageNumber: int
    pageWidth: float
    pageHeight: float
    pageCount: int


__all__ = [
    "DocumentResource",
    "DocumentUploadResponse",
    "ExtractTextRequest",
    "ExtractTextResponse",
]
