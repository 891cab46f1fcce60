from __future__ import annotations

import base64
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import AppStatus

from narrator.app import create_app
from narrator.client.sse import ProgressFrame, SSEFrameDecoder, decode_progress
from narrator.config import Settings
from narrator.services.speech_service import SpeechService
from narrator.services.tts.progress import NO_TEXT_AVAILABLE
from narrator.services.tts.provider import TTSProviderError


class RecordingProvider:
    output_variant = "recording"

    def __init__(self, *, payload: bytes = bytes(1000), fail: bool = False) -> None:
        self.payload = payload
        self.fail = fail
        self.texts: list[str] = []
        self.voices: list[str] = []

    async def synthesize(self, text, *, voice, speed=1.0, temperature=1.0) -> bytes:
        self.texts.append(text)
        self.voices.append(voice)
        if self.fail:
            raise TTSProviderError(503, "voice engine overloaded")
        return self.payload


@pytest.fixture(autouse=True)
def reset_sse_app_status(monkeypatch):
    # Each TestClient runs its own event loop
    monkeypatch.setattr(AppStatus, "should_exit_event", None, raising=False)


@pytest.fixture
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def speech_client(settings: Settings, provider: RecordingProvider) -> Generator[TestClient, None, None]:
    app = create_app(settings)
    app.state.speech_service = SpeechService(settings, provider=provider)
    with TestClient(app) as client:
        yield client


def _frames(response) -> list[ProgressFrame]:
    decoder = SSEFrameDecoder()
    events = decoder.feed(response.text) + decoder.flush()
    return [decode_progress(event) for event in events]


def _synthesize(client: TestClient, **body) -> list[ProgressFrame]:
    response = client.post("/api/pdf-to-speech", json=body)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    return _frames(response)


def test_inline_text_streams_progress_then_audio(speech_client: TestClient, provider) -> None:
    frames = _synthesize(speech_client, text="Read this aloud.", voiceId="alto", speed=1.1)

    assert [frame.percent_complete for frame in frames] == [0, 99, 100]
    terminal = frames[-1]
    assert terminal.error is None
    assert base64.b64decode(terminal.audio) == provider.payload
    assert terminal.content_type == "audio/mpeg"
    assert provider.texts == ["Read this aloud."]
    assert provider.voices == ["alto"]


def test_default_voice_is_used_when_none_given(speech_client: TestClient, provider, settings: Settings) -> None:
    _synthesize(speech_client, text="Hello.")
    assert provider.voices == [settings.tts_default_voice]


def test_empty_request_gets_single_error_frame(speech_client: TestClient, provider) -> None:
    frames = _synthesize(speech_client, text="   ")

    assert len(frames) == 1
    assert frames[0].error == NO_TEXT_AVAILABLE
    assert frames[0].audio is None
    assert provider.texts == []


def test_unknown_document_gets_single_error_frame(speech_client: TestClient, provider) -> None:
    frames = _synthesize(
        speech_client, documentId="0123456789abcdef0123456789abcdef", pageNumber=1
    )

    assert [frame.error for frame in frames] == [NO_TEXT_AVAILABLE]
    assert provider.texts == []


def test_provider_failure_ends_stream_with_error(settings: Settings) -> None:
    app = create_app(settings)
    app.state.speech_service = SpeechService(settings, provider=RecordingProvider(fail=True))
    with TestClient(app) as client:
        frames = _synthesize(client, text="This will fail.")

    terminal = frames[-1]
    assert terminal.error == "voice engine overloaded"
    assert terminal.audio is None
    assert terminal.percent_complete == 100


def test_document_page_and_continuous_reading(speech_client: TestClient, provider, make_pdf) -> None:
    pdf = make_pdf("Page one.", "Page two.", "Page three.")
    upload = speech_client.post(
        "/api/uploads", files={"file": ("book.pdf", pdf, "application/pdf")}
    )
    document_id = upload.json()["document"]["id"]

    _synthesize(speech_client, documentId=document_id, pageNumber=2)
    _synthesize(speech_client, documentId=document_id, pageNumber=2, isContinuous=True)

    assert provider.texts == ["Page two.", "Page two. Page three."]


def test_blank_page_gets_single_error_frame(speech_client: TestClient, provider, make_pdf) -> None:
    upload = speech_client.post(
        "/api/uploads", files={"file": ("blank.pdf", make_pdf(""), "application/pdf")}
    )
    document_id = upload.json()["document"]["id"]

    frames = _synthesize(speech_client, documentId=document_id, pageNumber=1)

    assert [frame.error for frame in frames] == [NO_TEXT_AVAILABLE]


def test_repeat_request_is_served_from_synthesis_cache(speech_client: TestClient, provider) -> None:
    first = _synthesize(speech_client, text="Same words.")
    second = _synthesize(speech_client, text="Same words.")

    assert provider.texts == ["Same words."]
    assert first[-1].audio == second[-1].audio


def test_invalid_speed_is_rejected(speech_client: TestClient) -> None:
    response = speech_client.post("/api/pdf-to-speech", json={"text": "Hi.", "speed": 3.0})
    assert response.status_code == 422


def test_audio_range_request_returns_partial_content(speech_client: TestClient) -> None:
    frames = _synthesize(speech_client, text="One thousand bytes please.")
    audio_url = frames[-1].metadata["audioUrl"]

    partial = speech_client.get(audio_url, headers={"Range": "bytes=100-199"})

    assert partial.status_code == 206
    assert partial.headers["content-range"] == "bytes 100-199/1000"
    assert partial.headers["accept-ranges"] == "bytes"
    assert len(partial.content) == 100


def test_audio_without_range_returns_full_body(speech_client: TestClient) -> None:
    frames = _synthesize(speech_client, text="Full body.")
    audio_url = frames[-1].metadata["audioUrl"]

    full = speech_client.get(audio_url)
    malformed = speech_client.get(audio_url, headers={"Range": "bytes=abc"})

    assert full.status_code == 200
    assert full.headers["accept-ranges"] == "bytes"
    assert len(full.content) == 1000
    assert malformed.status_code == 200
    assert len(malformed.content) == 1000


def test_unknown_audio_returns_404(speech_client: TestClient) -> None:
    assert speech_client.get("/api/audio/missing").status_code == 404


def test_voice_options(speech_client: TestClient, settings: Settings) -> None:
    body = speech_client.get("/api/voices").json()
    assert body["defaultVoice"] == settings.tts_default_voice
    assert body["outputFormat"] == "mp3"
    assert body["minSpeed"] == 0.5
    assert body["maxTemperature"] == 1.5
