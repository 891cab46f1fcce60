"""HTTP client for the read-aloud backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import httpx

from .cache import PlaybackRequest
from .sse import ProgressFrame, SSEFrameDecoder, decode_progress

logger = logging.getLogger(__name__)


class SpeechClientError(RuntimeError):
    """Raised when the backend rejects a request or the stream breaks."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict):
        detail = payload.get("detail", payload)
        if isinstance(detail, dict):
            return str(detail.get("error") or detail)
        return str(detail)
    return str(payload)


class SpeechClient:
    """Talks to the upload, extraction and synthesis endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 300.0,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout, connect=10.0),
        )

    async def __aenter__(self) -> "SpeechClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def upload_document(self, path: Path) -> dict[str, Any]:
        with path.open("rb") as handle:
            response = await self._client.post(
                "/api/uploads",
                files={"file": (path.name, handle, "application/pdf")},
            )
        if response.status_code >= 400:
            raise SpeechClientError(
                _error_detail(response), status_code=response.status_code
            )
        return response.json()["document"]

    async def extract_page_text(
        self, *, document_id: str, page_number: int
    ) -> dict[str, Any]:
        response = await self._client.post(
            "/api/extract-pdf-text",
            json={"documentId": document_id, "pageNum": page_number},
        )
        if response.status_code >= 400:
            raise SpeechClientError(
                _error_detail(response), status_code=response.status_code
            )
        return response.json()

    async def voice_options(self) -> dict[str, Any]:
        response = await self._client.get("/api/voices")
        if response.status_code >= 400:
            raise SpeechClientError(
                _error_detail(response), status_code=response.status_code
            )
        return response.json()

    async def stream_synthesis(
        self, request: PlaybackRequest
    ) -> AsyncIterator[ProgressFrame]:
        """Yield progress frames until the terminal frame arrives."""

        decoder = SSEFrameDecoder()
        try:
            async with self._client.stream(
                "POST",
                "/api/pdf-to-speech",
                json=request.to_payload(),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise SpeechClientError(
                        _error_detail(response), status_code=response.status_code
                    )
                async for text in response.aiter_text():
                    for event in decoder.feed(text):
                        frame = decode_progress(event)
                        yield frame
                        if frame.is_terminal:
                            return
                for event in decoder.flush():
                    frame = decode_progress(event)
                    yield frame
                    if frame.is_terminal:
                        return
        except httpx.HTTPError as exc:
            raise SpeechClientError(f"Synthesis stream failed: {exc}") from exc
        except ValueError as exc:
            raise SpeechClientError(str(exc)) from exc

        raise SpeechClientError("Synthesis stream ended without a result")


__all__ = ["SpeechClient", "SpeechClientError"]
