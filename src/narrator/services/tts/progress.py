"""Progress events for one synthesis request, from first frame to terminal frame."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from .assembler import (
    AssembledAudio,
    AudioFormatError,
    EmptyAudioError,
    assemble_audio,
)
from .dispatcher import SpeechRequestDispatcher
from .provider import TTSProviderError
from .text_chunker import chunk_text

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to convert text to speech"
NO_TEXT_AVAILABLE = "No text available for this page"


class StreamWriteError(RuntimeError):
    """Raised when a progress frame can no longer be delivered to the client."""


@dataclass(frozen=True)
class ProgressEvent:
    percent_complete: int
    audio: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.audio is not None or self.error is not None

    @property
    def event_name(self) -> str:
        if self.error is not None:
            return "error"
        if self.audio is not None:
            return "complete"
        return "progress"

    @classmethod
    def failure(cls, message: str) -> "ProgressEvent":
        return cls(percent_complete=100, error=message or GENERIC_FAILURE)

    @classmethod
    def success(cls, audio: AssembledAudio, **metadata: Any) -> "ProgressEvent":
        meta = {
            "contentType": audio.content_type,
            "duration": audio.duration_seconds,
            "sizeBytes": audio.content_length,
        }
        meta.update({key: value for key, value in metadata.items() if value is not None})
        return cls(
            percent_complete=100,
            audio=base64.b64encode(audio.data).decode("ascii"),
            metadata=meta,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"percentComplete": self.percent_complete}
        if self.audio is not None:
            payload["audio"] = self.audio
        if self.error is not None:
            payload["error"] = self.error
        payload.update(self.metadata)
        return payload

    def to_sse(self) -> dict[str, str]:
        return {"event": self.event_name, "data": json.dumps(self.to_payload())}


class SynthesisJob:
    """
    Drive one synthesis request: chunk, dispatch, assemble.

    ``events()`` yields ``0``, then monotonically non-decreasing percentages
    up to 99, then exactly one terminal event carrying audio or an error.
    Failures never escape as exceptions.
    """

    def __init__(
        self,
        text: str,
        *,
        voice_id: str,
        speed: float,
        temperature: float,
        dispatcher: SpeechRequestDispatcher,
        max_chunk_size: int,
        content_type: str = "audio/mpeg",
        output_format: str = "mp3",
        sample_rate: int = 24000,
        bitrate_kbps: int = 128,
        on_assembled: Optional[Callable[[AssembledAudio], Optional[str]]] = None,
    ) -> None:
        self._text = text
        self._voice_id = voice_id
        self._speed = speed
        self._temperature = temperature
        self._dispatcher = dispatcher
        self._max_chunk_size = max_chunk_size
        self._content_type = content_type
        self._output_format = output_format
        self._sample_rate = sample_rate
        self._bitrate_kbps = bitrate_kbps
        self._on_assembled = on_assembled

    async def events(self) -> AsyncIterator[ProgressEvent]:
        chunks = chunk_text(self._text, self._max_chunk_size)
        if not chunks:
            yield ProgressEvent.failure(NO_TEXT_AVAILABLE)
            return

        yield ProgressEvent(percent_complete=0)

        payloads: list[bytes] = []
        percent = 0
        results = self._dispatcher.dispatch(
            chunks, self._voice_id, self._speed, self._temperature
        )
        try:
            async for result in results:
                payloads.append(result.payload)
                percent = max(percent, result.progress)
                yield ProgressEvent(percent_complete=percent)
            audio = assemble_audio(
                payloads,
                content_type=self._content_type,
                output_format=self._output_format,
                sample_rate=self._sample_rate,
                bitrate_kbps=self._bitrate_kbps,
            )
        except TTSProviderError as exc:
            logger.warning("Synthesis failed (%s): %s", exc.status_code, exc.message)
            yield ProgressEvent.failure(exc.message)
            return
        except EmptyAudioError:
            logger.warning("Provider produced no audio for %d chunk(s)", len(chunks))
            yield ProgressEvent.failure("TTS provider returned no audio")
            return
        except AudioFormatError as exc:
            logger.warning("Provider audio could not be assembled: %s", exc)
            yield ProgressEvent.failure("TTS provider returned unreadable audio")
            return
        except Exception:
            logger.exception("Unexpected synthesis failure")
            yield ProgressEvent.failure(GENERIC_FAILURE)
            return
        finally:
            await results.aclose()

        audio_id = self._on_assembled(audio) if self._on_assembled else None
        logger.info(
            "Synthesis complete: %d chunk(s), %d bytes, ~%.1fs",
            len(chunks),
            audio.content_length,
            audio.duration_seconds,
        )
        yield ProgressEvent.success(
            audio,
            audioId=audio_id,
            audioUrl=f"/api/audio/{audio_id}" if audio_id else None,
            chunks=len(chunks),
        )


async def stream_until_disconnected(
    events: AsyncIterator[ProgressEvent],
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[ProgressEvent]:
    """Forward events until the consumer goes away, then stop the producer."""

    try:
        async for event in events:
            if await is_disconnected():
                raise StreamWriteError(
                    f"client disconnected before {event.percent_complete}% frame"
                )
            yield event
    except StreamWriteError as exc:
        logger.warning("Abandoning synthesis stream: %s", exc)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


async def single_event(event: ProgressEvent) -> AsyncIterator[ProgressEvent]:
    yield event


__all__ = [
    "GENERIC_FAILURE",
    "NO_TEXT_AVAILABLE",
    "ProgressEvent",
    "StreamWriteError",
    "SynthesisJob",
    "single_event",
    "stream_until_disconnected",
]
