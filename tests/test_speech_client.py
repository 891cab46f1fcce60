import httpx
import pytest

from narrator.client.api import SpeechClient, SpeechClientError
from narrator.client.cache import PlaybackRequest

SSE_BODY = (
    ": ping\r\n\r\n"
    'event: progress\r\ndata: {"percentComplete": 0}\r\n\r\n'
    'event: progress\r\ndata: {"percentComplete": 99}\r\n\r\n'
    'event: complete\r\ndata: {"percentComplete": 100, "audio": "QUJD", "contentType": "audio/mpeg"}\r\n\r\n'
)


def make_client(handler) -> SpeechClient:
    http_client = httpx.AsyncClient(
        base_url="http://narrator.test", transport=httpx.MockTransport(handler)
    )
    return SpeechClient("http://narrator.test", http_client=http_client)


@pytest.mark.asyncio
async def test_stream_synthesis_decodes_frames() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = request.content
        return httpx.Response(
            200, content=SSE_BODY.encode(), headers={"Content-Type": "text/event-stream"}
        )

    client = make_client(handler)
    request = PlaybackRequest(document_id="doc-1", page_number=2, voice_id="alto")

    frames = [frame async for frame in client.stream_synthesis(request)]

    assert captured["path"] == "/api/pdf-to-speech"
    assert b'"pageNumber": 2' in captured["body"] or b'"pageNumber":2' in captured["body"]
    assert [frame.percent_complete for frame in frames] == [0, 99, 100]
    assert frames[-1].audio == "QUJD"


@pytest.mark.asyncio
async def test_stream_without_terminal_frame_is_an_error() -> None:
    body = 'event: progress\ndata: {"percentComplete": 0}\n\n'
    client = make_client(lambda request: httpx.Response(200, content=body.encode()))

    with pytest.raises(SpeechClientError):
        async for _ in client.stream_synthesis(PlaybackRequest(document_id="doc-1")):
            pass


@pytest.mark.asyncio
async def test_http_error_carries_status() -> None:
    client = make_client(lambda request: httpx.Response(422, json={"detail": "bad speed"}))

    with pytest.raises(SpeechClientError) as excinfo:
        async for _ in client.stream_synthesis(PlaybackRequest(document_id="doc-1")):
            pass

    assert excinfo.value.status_code == 422
    assert str(excinfo.value) == "bad speed"


@pytest.mark.asyncio
async def test_extract_page_text_reports_structured_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            422, json={"detail": {"error": "Failed to extract text from PDF", "details": "x"}}
        )

    client = make_client(handler)
    with pytest.raises(SpeechClientError) as excinfo:
        await client.extract_page_text(document_id="doc-1", page_number=5)

    assert str(excinfo.value) == "Failed to extract text from PDF"
