"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import PROJECT_ROOT, Settings, get_settings
from .logging_handlers import DateStampedFileHandler, cleanup_old_logs
from .logging_settings import parse_logging_settings
from .routers.documents import router as documents_router
from .routers.speech import router as speech_router
from .services.documents import DocumentService
from .services.speech_service import SpeechService

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_under(base: Path, p: Path) -> Path:
    # Absolute paths are used as-is (tests and external mounts).
    if p.is_absolute():
        return p.resolve()
    resolved = (base / p).resolve()
    if not resolved.is_relative_to(base):
        raise ValueError(f"Configured path {resolved} escapes project root {base}")
    return resolved


def _configure_logging(settings: Settings) -> None:
    """Configure console and date-stamped file logging.

    ``LOG_LEVEL`` sets the overall level; ``logging_settings.conf`` can lower
    or disable the terminal and file outputs individually.
    """

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    file_settings = parse_logging_settings(
        _resolve_under(PROJECT_ROOT, settings.logging_settings_path)
    )
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if file_settings.terminal_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(max(log_level, file_settings.terminal_level))
        handlers.append(console_handler)

    log_dir = _resolve_under(PROJECT_ROOT, settings.log_dir)
    if file_settings.file_level is not None:
        file_handler = DateStampedFileHandler(
            log_dir,
            prefix="narrator",
            tz_name=file_settings.timezone,
            delay=True,
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(max(log_level, file_settings.file_level))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers or [logging.NullHandler()],
        force=True,  # Override any existing configuration
    )

    logging.getLogger("narrator").setLevel(log_level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(log_level)

    # Quiet down noisy third-party libraries unless debugging
    noisy_level = log_level if log_level <= logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(noisy_level)
    logging.getLogger("httpcore").setLevel(noisy_level)

    cleanup_old_logs(
        [log_dir],
        file_settings.retention_hours,
        logger=logging.getLogger(__name__),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    # Load .env before anything reads the environment
    load_dotenv()
    settings = settings or get_settings()
    _configure_logging(settings)

    speech_service = SpeechService(settings)
    document_service = DocumentService(
        _resolve_under(PROJECT_ROOT, settings.documents_dir),
        max_size_bytes=settings.documents_max_size_bytes,
        url_ttl=settings.document_signed_url_ttl,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.info(
            "PDF read-aloud service ready (provider=%s, format=%s)",
            settings.tts_base_url,
            settings.tts_output_format,
        )
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(app.state.speech_service.shutdown(), timeout=5.0)
            except asyncio.TimeoutError:
                logging.warning("Speech service shutdown timed out after 5s")
            except Exception as exc:
                logging.warning("Error during speech service shutdown: %s", exc)

    app = FastAPI(
        title="PDF Read-Aloud Backend",
        version="0.1.0",
        description="Upload PDFs and stream their pages as synthesized speech.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.speech_service = speech_service
    app.state.document_service = document_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges"],
    )

    app.include_router(documents_router)
    app.include_router(speech_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | int | None]:
        return {
            "status": "ok",
            "tts_provider": str(settings.tts_base_url),
            "default_voice": settings.tts_default_voice,
            "stored_audio": len(app.state.speech_service.audio_store),
        }

    return app


__all__ = ["create_app"]
