"""Per-document playback cache keyed by the full synthesis fingerprint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from .audio import AudioResource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fingerprint:
    """Everything that changes what the synthesized audio sounds like."""

    document_id: str
    scope: str
    voice_id: str
    speed: float
    temperature: float


@dataclass(frozen=True)
class PlaybackRequest:
    """A read-aloud request for one page, or from a page to the end."""

    document_id: str
    page_number: int = 1
    voice_id: str = ""
    speed: float = 1.0
    temperature: float = 1.0
    continuous: bool = False
    text: str = ""

    @property
    def scope(self) -> str:
        if self.continuous:
            return f"range:{self.page_number}-end"
        return f"page:{self.page_number}"

    @property
    def fingerprint(self) -> Fingerprint:
        return Fingerprint(
            document_id=self.document_id,
            scope=self.scope,
            voice_id=self.voice_id,
            speed=float(self.speed),
            temperature=float(self.temperature),
        )

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "text": self.text,
            "speed": self.speed,
            "temperature": self.temperature,
            "pageNumber": self.page_number,
            "isContinuous": self.continuous,
            "documentId": self.document_id,
        }
        if self.voice_id:
            payload["voiceId"] = self.voice_id
        return payload


class PlaybackCache:
    """
    Holds decoded audio for the lifetime of a document view.

    Entries that are replaced or removed have their resources released so no
    temporary audio files outlive the cache.
    """

    def __init__(self) -> None:
        self._entries: dict[Fingerprint, AudioResource] = {}

    def get(self, fingerprint: Fingerprint) -> Optional[AudioResource]:
        resource = self._entries.get(fingerprint)
        if resource is not None and resource.released:
            del self._entries[fingerprint]
            return None
        return resource

    def put(self, fingerprint: Fingerprint, resource: AudioResource) -> None:
        previous = self._entries.get(fingerprint)
        if previous is not None and previous is not resource:
            previous.release()
        self._entries[fingerprint] = resource

    def invalidate(self, fingerprint: Fingerprint) -> None:
        resource = self._entries.pop(fingerprint, None)
        if resource is not None:
            resource.release()

    def invalidate_document(self, document_id: str) -> int:
        stale = [fp for fp in self._entries if fp.document_id == document_id]
        for fingerprint in stale:
            self.invalidate(fingerprint)
        return len(stale)

    def clear(self) -> None:
        for resource in self._entries.values():
            resource.release()
        if self._entries:
            logger.debug("Released %d cached audio resources", len(self._entries))
        self._entries.clear()

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def __iter__(self) -> Iterator[Fingerprint]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["Fingerprint", "PlaybackCache", "PlaybackRequest"]
