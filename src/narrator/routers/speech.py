"""Speech synthesis routes: progress streaming and audio retrieval."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sse_starlette.sse import EventSourceResponse

from ..config import Settings
from ..schemas.speech import SynthesisRequest, VoiceOptions
from ..services.documents import DocumentNotFound, DocumentService
from ..services.extraction import ExtractionError, extract_page, extract_range
from ..services.speech_service import SpeechService
from ..services.tts.progress import (
    NO_TEXT_AVAILABLE,
    ProgressEvent,
    single_event,
    stream_until_disconnected,
)
from ..services.tts.text_chunker import normalize_whitespace
from ..utils.http_ranges import parse_byte_range
from .documents import get_app_settings, get_document_service, load_pdf_bytes

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["speech"])


def get_speech_service(request: Request) -> SpeechService:
    service = getattr(request.app.state, "speech_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Speech service unavailable")
    return service


async def _resolve_text(
    payload: SynthesisRequest,
    documents: DocumentService,
    settings: Settings,
) -> str:
    """Inline text wins; otherwise read the page (or the rest of the document)."""

    text = normalize_whitespace(payload.text)
    if text or not payload.document_id:
        return text

    pdf_bytes = await load_pdf_bytes(
        documents, settings, document_id=payload.document_id, pdf_url=None
    )
    start_page = payload.page_number or 1
    if payload.is_continuous:
        return await asyncio.to_thread(extract_range, pdf_bytes, start_page)
    page = await asyncio.to_thread(extract_page, pdf_bytes, start_page)
    return page.text


def _single_frame(event: ProgressEvent) -> EventSourceResponse:
    async def publisher():
        async for item in single_event(event):
            yield item.to_sse()

    return EventSourceResponse(publisher())


@router.post("/pdf-to-speech", response_model=None, status_code=200)
async def pdf_to_speech(
    payload: SynthesisRequest,
    request: Request,
    speech: SpeechService = Depends(get_speech_service),
    documents: DocumentService = Depends(get_document_service),
    settings: Settings = Depends(get_app_settings),
) -> EventSourceResponse:
    """Synthesize text and stream progress through Server-Sent Events."""

    try:
        text = await _resolve_text(payload, documents, settings)
    except (DocumentNotFound, ExtractionError) as exc:
        logger.info("No text for synthesis request: %s", exc)
        return _single_frame(ProgressEvent.failure(NO_TEXT_AVAILABLE))

    if not text:
        return _single_frame(ProgressEvent.failure(NO_TEXT_AVAILABLE))

    job = speech.create_job(
        text,
        voice_id=payload.voice_id,
        speed=payload.speed,
        temperature=payload.temperature,
    )

    async def event_publisher():
        async for event in stream_until_disconnected(
            job.events(), request.is_disconnected
        ):
            yield event.to_sse()

    return EventSourceResponse(event_publisher())


@router.get("/audio/{audio_id}")
async def get_audio(
    audio_id: str,
    request: Request,
    speech: SpeechService = Depends(get_speech_service),
) -> Response:
    """Serve previously synthesized audio, honoring single byte ranges."""

    audio = speech.audio_store.get(audio_id)
    if audio is None:
        raise HTTPException(status_code=404, detail="Audio not found")

    size = audio.content_length
    headers = {
        "Accept-Ranges": "bytes",
        "Cache-Control": "private, max-age=3600",
    }
    byte_range = parse_byte_range(request.headers.get("range"), size)
    if byte_range is None:
        return Response(content=audio.data, media_type=audio.content_type, headers=headers)

    headers["Content-Range"] = byte_range.content_range(size)
    return Response(
        content=audio.data[byte_range.start : byte_range.end + 1],
        status_code=206,
        media_type=audio.content_type,
        headers=headers,
    )


@router.get("/voices", response_model=VoiceOptions)
async def voice_options(settings: Settings = Depends(get_app_settings)) -> VoiceOptions:
    return VoiceOptions(
        defaultVoice=settings.tts_default_voice,
        outputFormat=settings.tts_output_format,
        sampleRate=settings.tts_sample_rate,
    )


__all__ = ["get_speech_service", "router"]
