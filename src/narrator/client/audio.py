"""Playable audio resources decoded from the synthesis stream."""

from __future__ import annotations

import base64
import binascii
import logging
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_SUFFIXES = {
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/aac": ".aac",
    "audio/wav": ".wav",
    "audio/pcm": ".pcm",
}


class PlaybackError(RuntimeError):
    """Raised when audio cannot be decoded or played on the client."""


class AudioResource:
    """
    Decoded audio plus a lazily created temporary file for players.

    The temporary file plays the part of a browser object URL: it exists only
    while the resource is alive and ``release()`` removes it.
    """

    def __init__(
        self,
        data: bytes,
        content_type: str = "audio/mpeg",
        *,
        duration_seconds: Optional[float] = None,
        audio_url: Optional[str] = None,
    ) -> None:
        self.data = data
        self.content_type = content_type
        self.duration_seconds = duration_seconds
        self.audio_url = audio_url
        self._path: Optional[Path] = None
        self._released = False

    @classmethod
    def from_base64(
        cls,
        encoded: str,
        content_type: str = "audio/mpeg",
        *,
        duration_seconds: Optional[float] = None,
        audio_url: Optional[str] = None,
    ) -> "AudioResource":
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PlaybackError(f"Could not decode audio: {exc}") from exc
        if not data:
            raise PlaybackError("Decoded audio is empty")
        return cls(
            data,
            content_type,
            duration_seconds=duration_seconds,
            audio_url=audio_url,
        )

    @property
    def released(self) -> bool:
        return self._released

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def path(self) -> Path:
        """Materialize the audio on disk and return its location."""

        if self._released:
            raise PlaybackError("Audio resource has been released")
        if self._path is None:
            suffix = _SUFFIXES.get(self.content_type, ".bin")
            with tempfile.NamedTemporaryFile(
                prefix="narrator-", suffix=suffix, delete=False
            ) as handle:
                handle.write(self.data)
                self._path = Path(handle.name)
        return self._path

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._path is not None:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", self._path, exc)
            self._path = None


__all__ = ["AudioResource", "PlaybackError"]
