"""Helpers for mirroring uploaded documents to Google Cloud Storage."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

from google.cloud import storage
from google.oauth2 import service_account

from ..config import get_settings

logger = logging.getLogger(__name__)

_client: storage.Client | None = None
_bucket: storage.Bucket | None = None
_credentials_available: bool | None = None


def _load_credentials(settings) -> service_account.Credentials | None:
    credentials_path: Path | None = getattr(
        settings, "google_application_credentials", None
    )
    if credentials_path is None:
        return None

    resolved_path = Path(credentials_path).expanduser().resolve()
    if not resolved_path.exists():
        return None
    try:
        return service_account.Credentials.from_service_account_file(str(resolved_path))
    except (OSError, ValueError) as exc:
        logger.debug("Could not load GCS credentials from %s: %s", resolved_path, exc)
        return None


def is_gcs_available() -> bool:
    """True when a bucket is configured and credentials can be loaded."""

    global _credentials_available
    if _credentials_available is None:
        settings = get_settings()
        _credentials_available = bool(settings.gcs_bucket_name) and (
            _load_credentials(settings) is not None
        )
    return _credentials_available


def get_client() -> storage.Client:
    """Return a cached Storage client."""

    global _client
    if _client is None:
        settings = get_settings()
        credentials = _load_credentials(settings)
        if credentials is None:
            raise RuntimeError(
                "GCS credentials not found. Please configure GOOGLE_APPLICATION_CREDENTIALS "
                "with a valid service account JSON file."
            )
        _client = storage.Client(
            project=settings.gcp_project_id,
            credentials=credentials,
        )
    return _client


def get_bucket() -> storage.Bucket:
    """Return the configured GCS bucket."""

    global _bucket
    if _bucket is None:
        _bucket = get_client().bucket(get_settings().gcs_bucket_name)
    return _bucket


def upload_bytes(blob_name: str, data: bytes, *, content_type: str) -> None:
    """Upload raw bytes to the configured bucket."""

    blob = get_bucket().blob(blob_name)
    # Atomic create: prevent overwriting an existing object
    blob.upload_from_string(
        data,
        content_type=content_type,
        if_generation_match=0,
    )


def sign_get_url(blob_name: str, *, expires_delta: timedelta) -> str:
    """Generate a signed GET URL for the given blob."""

    blob = get_bucket().blob(blob_name)
    return blob.generate_signed_url(
        version="v4",
        expiration=expires_delta,
        method="GET",
    )


def reset_cache() -> None:
    """Forget cached clients and credential checks (settings changed)."""

    global _client, _bucket, _credentials_available
    _client = None
    _bucket = None
    _credentials_available = None


__all__ = [
    "get_bucket",
    "get_client",
    "is_gcs_available",
    "reset_cache",
    "sign_get_url",
    "upload_bytes",
]
