"""Application configuration using environment variables."""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "cors_allow_origins"),
    )

    # Remote TTS provider
    tts_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("TTS_API_KEY", "tts_api_key"),
    )
    tts_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("http://127.0.0.1:8880/v1"),
        validation_alias=AliasChoices("TTS_BASE_URL", "tts_base_url"),
    )
    tts_model: str = Field(
        default="standard",
        validation_alias=AliasChoices("TTS_MODEL", "tts_model"),
    )
    tts_default_voice: str = Field(
        default="narrator-en",
        validation_alias=AliasChoices("TTS_DEFAULT_VOICE", "tts_default_voice"),
    )
    tts_output_format: Literal["mp3", "opus", "aac", "pcm", "wav"] = Field(
        default="mp3",
        validation_alias=AliasChoices("TTS_OUTPUT_FORMAT", "tts_output_format"),
    )
    tts_sample_rate: int = Field(
        default=24000,
        ge=8000,
        le=48000,
        validation_alias=AliasChoices("TTS_SAMPLE_RATE", "tts_sample_rate"),
    )
    tts_bitrate_kbps: int = Field(
        default=128,
        ge=8,
        validation_alias=AliasChoices("TTS_BITRATE_KBPS", "tts_bitrate_kbps"),
    )
    tts_language: str = Field(
        default="en",
        validation_alias=AliasChoices("TTS_LANGUAGE", "tts_language"),
    )
    tts_max_chunk_size: int = Field(
        default=15000,
        ge=1,
        validation_alias=AliasChoices("TTS_MAX_CHUNK_SIZE", "tts_max_chunk_size"),
    )
    tts_request_timeout: float = Field(
        default=120.0,
        ge=1,
        validation_alias=AliasChoices("TTS_TIMEOUT", "tts_request_timeout"),
    )
    tts_chunk_timeout_seconds: float = Field(
        default=180.0,
        ge=1,
        validation_alias=AliasChoices(
            "TTS_CHUNK_TIMEOUT_SECONDS",
            "tts_chunk_timeout_seconds",
        ),
    )
    tts_max_concurrency: int = Field(
        default=1,
        ge=1,
        le=8,
        validation_alias=AliasChoices("TTS_MAX_CONCURRENCY", "tts_max_concurrency"),
    )

    # Caches
    synthesis_cache_max_entries: int = Field(
        default=64,
        ge=1,
        validation_alias=AliasChoices(
            "SYNTHESIS_CACHE_MAX_ENTRIES",
            "synthesis_cache_max_entries",
        ),
    )
    audio_store_max_entries: int = Field(
        default=32,
        ge=1,
        validation_alias=AliasChoices(
            "AUDIO_STORE_MAX_ENTRIES",
            "audio_store_max_entries",
        ),
    )

    # Uploaded documents
    documents_dir: Path = Field(
        default_factory=lambda: Path("data/documents"),
        validation_alias=AliasChoices("DOCUMENTS_DIR", "documents_dir"),
    )
    documents_max_size_bytes: int = Field(
        default=32 * 1024 * 1024,
        ge=1,
        validation_alias=AliasChoices(
            "DOCUMENTS_MAX_SIZE_BYTES",
            "documents_max_size_bytes",
        ),
    )
    document_url_ttl_days: int = Field(
        default=7,
        ge=1,
        validation_alias=AliasChoices(
            "DOCUMENT_URL_TTL_DAYS",
            "document_url_ttl_days",
        ),
    )
    pdf_fetch_timeout_seconds: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices(
            "PDF_FETCH_TIMEOUT_SECONDS",
            "pdf_fetch_timeout_seconds",
        ),
    )

    # Optional Google Cloud Storage mirror for uploads
    gcs_bucket_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GCS_BUCKET_NAME", "gcs_bucket_name"),
    )
    gcp_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GCP_PROJECT_ID", "gcp_project_id"),
    )
    google_application_credentials: Path = Field(
        default_factory=lambda: Path("credentials/googlecloud/sa.json"),
        validation_alias=AliasChoices(
            "GOOGLE_APPLICATION_CREDENTIALS",
            "google_application_credentials",
        ),
    )

    # Logging
    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices(
            "LOGGING_SETTINGS_PATH",
            "logging_settings_path",
        ),
    )
    log_dir: Path = Field(
        default_factory=lambda: Path("logs/app"),
        validation_alias=AliasChoices("LOG_DIR", "log_dir"),
    )

    @property
    def document_signed_url_ttl(self) -> timedelta:
        return timedelta(days=self.document_url_ttl_days)

    @property
    def tts_content_type(self) -> str:
        return AUDIO_CONTENT_TYPES[self.tts_output_format]


AUDIO_CONTENT_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "pcm": "audio/pcm",
    "wav": "audio/wav",
}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["AUDIO_CONTENT_TYPES", "Settings", "get_settings"]
