"""Concatenate per-chunk audio payloads into one playable resource."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable

_PCM_BYTES_PER_SAMPLE = 2


class EmptyAudioError(RuntimeError):
    """Raised when there is no audio to assemble."""


class AudioFormatError(ValueError):
    """Raised when a payload does not match the configured container."""


@dataclass(frozen=True)
class AssembledAudio:
    data: bytes
    content_type: str
    duration_seconds: float

    @property
    def content_length(self) -> int:
        return len(self.data)


def estimate_duration(
    num_bytes: int,
    *,
    output_format: str,
    sample_rate: int,
    bitrate_kbps: int,
) -> float:
    """Rough playback duration in seconds for ``num_bytes`` of audio.

    For ``wav`` pass the sample bytes only; header bytes are not audio.
    """

    if num_bytes <= 0:
        return 0.0
    if output_format in {"pcm", "wav"}:
        return round(num_bytes / (_PCM_BYTES_PER_SAMPLE * sample_rate), 3)
    return round(num_bytes * 8 / (bitrate_kbps * 1000), 3)


def split_wav(payload: bytes) -> tuple[bytes, bytes]:
    """Split a RIFF/WAVE payload into its header chunks and its sample data.

    The header is everything before the ``data`` chunk. Streaming providers
    often write a zero or oversized ``data`` length, so the samples then run
    to the end of the payload.
    """

    if payload[:4] != b"RIFF" or payload[8:12] != b"WAVE":
        raise AudioFormatError("Payload is not a RIFF/WAVE stream")

    offset = 12
    while offset + 8 <= len(payload):
        chunk_id = payload[offset : offset + 4]
        (size,) = struct.unpack_from("<I", payload, offset + 4)
        body = offset + 8
        if chunk_id == b"data":
            end = body + size if 0 < size <= len(payload) - body else len(payload)
            return payload[:offset], payload[body:end]
        # Chunks are word aligned
        offset = body + size + (size & 1)
    raise AudioFormatError("WAV payload has no data chunk")


def merge_wav(payloads: list[bytes]) -> tuple[bytes, int]:
    """Merge WAV payloads under the first payload's header.

    Returns the merged file and the number of sample bytes it carries. The
    RIFF and ``data`` sizes are rewritten to cover every payload.
    """

    header = b""
    samples: list[bytes] = []
    for index, payload in enumerate(payloads):
        prefix, pcm = split_wav(payload)
        if index == 0:
            header = prefix
        samples.append(pcm)

    pcm = b"".join(samples)
    riff_size = len(header) + len(pcm)
    data = b"".join(
        [
            b"RIFF",
            struct.pack("<I", riff_size),
            header[8:],
            b"data",
            struct.pack("<I", len(pcm)),
            pcm,
        ]
    )
    return data, len(pcm)


def assemble_audio(
    payloads: Iterable[bytes],
    *,
    content_type: str = "audio/mpeg",
    output_format: str = "mp3",
    sample_rate: int = 24000,
    bitrate_kbps: int = 128,
) -> AssembledAudio:
    """Join payloads in order.

    Compressed frames and raw PCM decode when concatenated. WAV payloads each
    carry a header, so they are merged into one file with corrected sizes.
    """

    parts = list(payloads)
    if not parts:
        raise EmptyAudioError("No audio payloads to assemble")

    if output_format == "wav":
        data, audio_bytes = merge_wav(parts)
    else:
        data = b"".join(parts)
        audio_bytes = len(data)

    return AssembledAudio(
        data=data,
        content_type=content_type,
        duration_seconds=estimate_duration(
            audio_bytes,
            output_format=output_format,
            sample_rate=sample_rate,
            bitrate_kbps=bitrate_kbps,
        ),
    )


__all__ = [
    "AssembledAudio",
    "AudioFormatError",
    "EmptyAudioError",
    "assemble_audio",
    "estimate_duration",
    "merge_wav",
    "split_wav",
]
