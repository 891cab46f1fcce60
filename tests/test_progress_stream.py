import asyncio
import base64
import json

import pytest

from narrator.services.audio_store import AudioStore
from narrator.services.tts.dispatcher import SpeechRequestDispatcher
from narrator.services.tts.progress import (
    NO_TEXT_AVAILABLE,
    ProgressEvent,
    SynthesisJob,
    stream_until_disconnected,
)
from narrator.services.tts.provider import TTSProviderError


class EchoProvider:
    output_variant = "echo"

    def __init__(self, *, fail_on_call: int | None = None, delay: float = 0.0) -> None:
        self.fail_on_call = fail_on_call
        self.delay = delay
        self.calls = 0

    async def synthesize(self, text, *, voice, speed=1.0, temperature=1.0) -> bytes:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.calls == self.fail_on_call:
            raise TTSProviderError(502, "upstream voice engine unavailable")
        return bytes(range(10))


def _forty_thousand_chars() -> str:
    return " ".join(["word " * 19 + "end."] * 400)


def _job(text: str, provider, **kwargs) -> SynthesisJob:
    return SynthesisJob(
        text,
        voice_id="narrator-en",
        speed=1.0,
        temperature=1.0,
        dispatcher=SpeechRequestDispatcher(provider),
        max_chunk_size=15_000,
        **kwargs,
    )


async def _drain(job: SynthesisJob) -> list[ProgressEvent]:
    return [event async for event in job.events()]


@pytest.mark.asyncio
async def test_end_to_end_progress_and_audio() -> None:
    provider = EchoProvider()
    store = AudioStore()

    events = await _drain(_job(_forty_thousand_chars(), provider, on_assembled=store.put))

    percents = [event.percent_complete for event in events]
    assert percents[0] == 0
    assert percents[-1] == 100
    assert percents == sorted(percents)
    assert 100 not in percents[:-1]
    assert provider.calls == 3

    terminal = events[-1]
    assert all(event.audio is None for event in events[:-1])
    assert terminal.error is None
    assert len(base64.b64decode(terminal.audio)) == 30
    assert terminal.metadata["chunks"] == 3
    assert terminal.metadata["sizeBytes"] == 30

    audio_id = terminal.metadata["audioId"]
    assert terminal.metadata["audioUrl"] == f"/api/audio/{audio_id}"
    assert store.get(audio_id).data == bytes(range(10)) * 3


@pytest.mark.asyncio
async def test_failure_on_second_chunk_ends_with_error_frame() -> None:
    events = await _drain(_job(_forty_thousand_chars(), EchoProvider(fail_on_call=2)))

    terminal = events[-1]
    payload = terminal.to_payload()
    assert payload["error"] == "upstream voice engine unavailable"
    assert "audio" not in payload
    assert terminal.event_name == "error"
    assert [event.percent_complete for event in events[:-1]] == [0, 33]
    assert sum(1 for event in events if event.is_terminal) == 1


@pytest.mark.asyncio
async def test_empty_text_yields_single_error_frame() -> None:
    provider = EchoProvider()

    events = await _drain(_job("   ", provider))

    assert len(events) == 1
    assert events[0].error == NO_TEXT_AVAILABLE
    assert events[0].percent_complete == 100
    assert provider.calls == 0


def test_sse_serialization() -> None:
    frame = ProgressEvent(percent_complete=42).to_sse()
    assert frame["event"] == "progress"
    assert json.loads(frame["data"]) == {"percentComplete": 42}

    failure = ProgressEvent.failure("").to_sse()
    assert failure["event"] == "error"
    assert json.loads(failure["data"])["error"] == "Failed to convert text to speech"


@pytest.mark.asyncio
async def test_disconnect_stops_forwarding_and_provider_work() -> None:
    provider = EchoProvider(delay=0.01)
    job = _job(_forty_thousand_chars(), provider)
    checks = {"count": 0}

    async def is_disconnected() -> bool:
        checks["count"] += 1
        return checks["count"] > 1

    forwarded = [event async for event in stream_until_disconnected(job.events(), is_disconnected)]

    assert [event.percent_complete for event in forwarded] == [0]
    assert provider.calls <= 1
