import asyncio
from typing import Optional

import pytest

from narrator.services.tts.dispatcher import SpeechRequestDispatcher, progress_percent
from narrator.services.tts.provider import TTSProviderError
from narrator.services.tts.synthesis_cache import InMemorySynthesisCache
from narrator.services.tts.text_chunker import Chunk


class StubProvider:
    """Echoes a 10-byte payload per chunk, optionally slow or failing."""

    output_variant = "stub|mp3"

    def __init__(
        self,
        *,
        fail_on: Optional[str] = None,
        delays: Optional[dict[str, float]] = None,
    ) -> None:
        self.fail_on = fail_on
        self.delays = delays or {}
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.active = 0
        self.max_active = 0

    async def synthesize(self, text, *, voice, speed=1.0, temperature=1.0) -> bytes:
        self.calls.append(text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(text, 0))
            if text == self.fail_on:
                raise TTSProviderError(500, f"provider failed on {text}")
            return text.encode("utf-8")[:10].ljust(10, b"-")
        except asyncio.CancelledError:
            self.cancelled.append(text)
            raise
        finally:
            self.active -= 1


def _chunks(*texts: str) -> list[Chunk]:
    return [Chunk(index=i, text=text) for i, text in enumerate(texts)]


async def _collect(dispatcher, chunks, voice="narrator-en"):
    return [result async for result in dispatcher.dispatch(chunks, voice, 1.0, 1.0)]


def test_progress_percent_never_reports_completion() -> None:
    assert progress_percent(0, 3) == 0
    assert progress_percent(1, 3) == 33
    assert progress_percent(2, 3) == 66
    assert progress_percent(3, 3) == 99
    assert progress_percent(1, 1) == 99
    assert progress_percent(0, 0) == 0


@pytest.mark.asyncio
async def test_dispatch_yields_payloads_in_order_with_progress() -> None:
    provider = StubProvider()
    dispatcher = SpeechRequestDispatcher(provider)

    results = await _collect(dispatcher, _chunks("alpha", "bravo", "charlie"))

    assert [r.index for r in results] == [0, 1, 2]
    assert [r.progress for r in results] == [33, 66, 99]
    assert [r.payload for r in results] == [b"alpha-----", b"bravo-----", b"charlie---"]
    assert provider.max_active == 1


@pytest.mark.asyncio
async def test_failure_on_second_chunk_stops_the_request() -> None:
    provider = StubProvider(fail_on="bravo")
    cache = InMemorySynthesisCache()
    dispatcher = SpeechRequestDispatcher(provider, cache)
    seen = []

    with pytest.raises(TTSProviderError) as excinfo:
        async for result in dispatcher.dispatch(_chunks("alpha", "bravo", "charlie"), "v"):
            seen.append(result.index)

    assert seen == [0]
    assert excinfo.value.status_code == 500
    assert provider.calls == ["alpha", "bravo"]
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_identical_request_is_served_from_cache() -> None:
    provider = StubProvider()
    dispatcher = SpeechRequestDispatcher(provider, InMemorySynthesisCache())
    chunks = _chunks("alpha", "bravo")

    first = await _collect(dispatcher, chunks)
    second = await _collect(dispatcher, chunks)

    assert provider.calls == ["alpha", "bravo"]
    assert [r.payload for r in second] == [r.payload for r in first]
    assert [r.progress for r in second] == [50, 99]


@pytest.mark.asyncio
async def test_voice_change_misses_the_cache() -> None:
    provider = StubProvider()
    dispatcher = SpeechRequestDispatcher(provider, InMemorySynthesisCache())
    chunks = _chunks("alpha")

    await _collect(dispatcher, chunks, voice="voice-a")
    await _collect(dispatcher, chunks, voice="voice-b")

    assert provider.calls == ["alpha", "alpha"]


@pytest.mark.asyncio
async def test_concurrent_dispatch_preserves_chunk_order() -> None:
    provider = StubProvider(delays={"alpha": 0.05, "bravo": 0.0, "charlie": 0.01})
    dispatcher = SpeechRequestDispatcher(provider, max_concurrency=3)

    results = await _collect(dispatcher, _chunks("alpha", "bravo", "charlie"))

    assert [r.index for r in results] == [0, 1, 2]
    assert [r.progress for r in results] == [33, 66, 99]
    assert provider.max_active == 3


@pytest.mark.asyncio
async def test_slow_chunk_times_out() -> None:
    provider = StubProvider(delays={"alpha": 5.0})
    dispatcher = SpeechRequestDispatcher(provider, chunk_timeout=0.05)

    with pytest.raises(TTSProviderError) as excinfo:
        await _collect(dispatcher, _chunks("alpha"))

    assert excinfo.value.status_code == 504


@pytest.mark.asyncio
async def test_closing_the_stream_cancels_outstanding_requests() -> None:
    provider = StubProvider(delays={"bravo": 5.0, "charlie": 5.0})
    dispatcher = SpeechRequestDispatcher(provider, max_concurrency=3)

    stream = dispatcher.dispatch(_chunks("alpha", "bravo", "charlie"), "v")
    first = await stream.__anext__()
    await stream.aclose()

    assert first.index == 0
    assert sorted(provider.cancelled) == ["bravo", "charlie"]
    assert provider.active == 0


def test_max_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SpeechRequestDispatcher(StubProvider(), max_concurrency=0)
