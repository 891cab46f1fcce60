"""Extract plain text and page geometry from PDF documents with PyMuPDF."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import fitz  # PyMuPDF
import httpx

from .tts.text_chunker import normalize_whitespace

logger = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    """Raised when text cannot be extracted for the requested page or range."""


@dataclass(frozen=True)
class PageText:
    text: str
    page_number: int
    page_width: float
    page_height: float
    page_count: int


def _open(pdf_bytes: bytes) -> fitz.Document:
    if not pdf_bytes:
        raise ExtractionError("PDF document is empty")
    try:
        return fitz.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise ExtractionError(f"Could not read PDF: {exc}") from exc


def _check_page(page_number: int, page_count: int) -> None:
    if page_number < 1 or page_number > page_count:
        raise ExtractionError(
            f"Page {page_number} is out of range (document has {page_count} pages)"
        )


def page_count(pdf_bytes: bytes) -> int:
    with _open(pdf_bytes) as doc:
        return doc.page_count


def extract_page(pdf_bytes: bytes, page_number: int) -> PageText:
    """Return the whitespace-normalized text of one 1-based page."""

    with _open(pdf_bytes) as doc:
        _check_page(page_number, doc.page_count)
        page = doc.load_page(page_number - 1)
        return PageText(
            text=normalize_whitespace(page.get_text("text")),
            page_number=page_number,
            page_width=float(page.rect.width),
            page_height=float(page.rect.height),
            page_count=doc.page_count,
        )


def extract_range(
    pdf_bytes: bytes,
    start_page: int,
    end_page: Optional[int] = None,
) -> str:
    """Join the text of pages ``start_page``..``end_page`` (inclusive, default last)."""

    with _open(pdf_bytes) as doc:
        _check_page(start_page, doc.page_count)
        last = doc.page_count if end_page is None else min(end_page, doc.page_count)
        if last < start_page:
            raise ExtractionError(f"Empty page range {start_page}-{end_page}")
        parts = [
            normalize_whitespace(doc.load_page(index).get_text("text"))
            for index in range(start_page - 1, last)
        ]
    return " ".join(part for part in parts if part)


async def fetch_pdf(url: str, *, timeout: float = 30.0, max_bytes: int) -> bytes:
    """Download a PDF by URL, refusing bodies larger than ``max_bytes``."""

    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                buffer = bytearray()
                async for part in response.aiter_bytes():
                    buffer.extend(part)
                    if len(buffer) > max_bytes:
                        raise ExtractionError(
                            f"PDF at {url} exceeds {max_bytes} bytes limit"
                        )
    except httpx.HTTPError as exc:
        logger.warning("Failed to download PDF from %s: %s", url, exc)
        raise ExtractionError(f"Failed to download PDF: {exc}") from exc

    if not buffer:
        raise ExtractionError("Downloaded PDF was empty")
    return bytes(buffer)


__all__ = [
    "ExtractionError",
    "PageText",
    "extract_page",
    "extract_range",
    "fetch_pdf",
    "page_count",
]
