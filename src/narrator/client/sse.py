"""Incremental Server-Sent Events decoding for synthesis progress streams."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


@dataclass
class ServerSentEvent:
    """Represents a parsed Server-Sent Event."""

    data: str
    event: str = "message"
    event_id: Optional[str] = None


@dataclass(frozen=True)
class ProgressFrame:
    """Client view of one progress event."""

    percent_complete: int
    audio: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.audio is not None or self.error is not None

    @property
    def content_type(self) -> str:
        return str(self.metadata.get("contentType") or "audio/mpeg")


class SSEFrameDecoder:
    """
    Turn arbitrarily split text reads into complete events.

    Frames are only parsed once their blank-line delimiter has arrived, so a
    frame split across network reads is buffered until it is whole. Both
    ``\\n`` and ``\\r\\n`` line endings are accepted; comment lines (keep-alive
    pings) are skipped.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> list[ServerSentEvent]:
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        events: list[ServerSentEvent] = []
        while True:
            frame, delimiter, rest = self._buffer.partition("\n\n")
            if not delimiter:
                break
            self._buffer = rest
            event = self._parse_frame(frame.split("\n"))
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[ServerSentEvent]:
        """Parse whatever is left when the stream ends without a final delimiter."""

        remainder, self._buffer = self._buffer.rstrip("\r\n"), ""
        if not remainder:
            return []
        event = self._parse_frame(remainder.split("\n"))
        return [event] if event is not None else []

    @staticmethod
    def _parse_frame(lines: Iterable[str]) -> Optional[ServerSentEvent]:
        event_name: Optional[str] = None
        event_id: Optional[str] = None
        data_lines: list[str] = []

        for line in lines:
            if not line or line.startswith(":"):
                continue
            name, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if name == "event":
                event_name = value or None
            elif name == "data":
                data_lines.append(value)
            elif name == "id":
                event_id = value or None

        if not data_lines and event_name is None:
            return None
        return ServerSentEvent(
            data="\n".join(data_lines),
            event=event_name or "message",
            event_id=event_id,
        )


def decode_progress(event: ServerSentEvent) -> ProgressFrame:
    """Parse the JSON payload of a progress event."""

    try:
        payload = json.loads(event.data)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed progress frame: {event.data[:80]!r}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Progress frame payload must be an object")

    metadata = {
        key: value
        for key, value in payload.items()
        if key not in {"percentComplete", "audio", "error"}
    }
    return ProgressFrame(
        percent_complete=int(payload.get("percentComplete", 0)),
        audio=payload.get("audio"),
        error=payload.get("error"),
        metadata=metadata,
    )


__all__ = ["ProgressFrame", "SSEFrameDecoder", "ServerSentEvent", "decode_progress"]
