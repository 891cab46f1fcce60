"""HTTP client for the remote text-to-speech provider."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from fastapi import status

from ...config import Settings

logger = logging.getLogger(__name__)


class TTSProviderError(Exception):
    """Wrap transport or API failures when communicating with the TTS provider."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail

    @property
    def message(self) -> str:
        if isinstance(self.detail, str):
            return self.detail
        return json.dumps(self.detail)


class TTSProviderClient:
    """
    Client for the provider's ``POST /tts`` endpoint.

    One call synthesizes one chunk and returns the complete binary body; the
    provider never streams partial audio back to us. HTTP clients are pooled
    per (base URL, timeout) and shared across requests.
    """

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._own_client: Optional[httpx.AsyncClient] = None

    @property
    def _base_url(self) -> str:
        return str(self._settings.tts_base_url).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": self._settings.tts_content_type,
        }
        if self._settings.tts_api_key is not None:
            headers["Authorization"] = (
                f"Bearer {self._settings.tts_api_key.get_secret_value()}"
            )
        return headers

    @property
    def output_variant(self) -> str:
        """Identifies every provider-side setting that changes the audio bytes."""

        s = self._settings
        return "|".join(
            [s.tts_model, s.tts_output_format, str(s.tts_sample_rate), s.tts_language]
        )

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self._settings.tts_request_timeout, connect=10.0)

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            if self._own_client is None:
                self._own_client = httpx.AsyncClient(
                    transport=self._transport, timeout=self._timeout()
                )
            return self._own_client

        key = (self._base_url, float(self._settings.tts_request_timeout))
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                client = httpx.AsyncClient(
                    timeout=self._timeout(),
                    limits=httpx.Limits(
                        max_connections=20,
                        max_keepalive_connections=10,
                    ),
                )
                self.__class__._client_pool[key] = client
                logger.info("Created pooled httpx.AsyncClient for %s", self._base_url)
        return client

    def build_payload(
        self,
        text: str,
        *,
        voice: str,
        speed: float,
        temperature: float,
    ) -> dict[str, Any]:
        return {
            "text": text,
            "voice": voice,
            "model": self._settings.tts_model,
            "outputFormat": self._settings.tts_output_format,
            "speed": speed,
            "sampleRate": self._settings.tts_sample_rate,
            "language": self._settings.tts_language,
            "temperature": temperature,
        }

    async def synthesize(
        self,
        text: str,
        *,
        voice: str,
        speed: float = 1.0,
        temperature: float = 1.0,
    ) -> bytes:
        """Synthesize one chunk and return the raw audio bytes."""

        payload = self.build_payload(
            text, voice=voice, speed=speed, temperature=temperature
        )
        client = await self._get_http_client()
        try:
            response = await client.post(
                f"{self._base_url}/tts",
                headers=self._headers,
                json=payload,
            )
        except httpx.TimeoutException as exc:
            raise TTSProviderError(
                status.HTTP_504_GATEWAY_TIMEOUT, "TTS provider timed out"
            ) from exc
        except httpx.HTTPError as exc:
            raise TTSProviderError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            logger.error(
                "TTS provider rejected chunk (%d chars): %s %s",
                len(text),
                response.status_code,
                detail,
            )
            raise TTSProviderError(response.status_code, detail)

        audio = response.content
        if not audio:
            raise TTSProviderError(
                status.HTTP_502_BAD_GATEWAY, "TTS provider returned no audio"
            )
        logger.info(
            "TTS synthesized %d bytes for text: %s...", len(audio), text[:50]
        )
        return audio

    async def aclose(self) -> None:
        if self._own_client is not None:
            await self._own_client.aclose()
            self._own_client = None

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                logger.warning("Error closing TTS HTTP client: %s", exc)

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "TTS provider returned an empty error response."
        text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text.strip() or "TTS provider request failed."
        if isinstance(payload, dict):
            for key in ("error", "message", "detail"):
                value = payload.get(key)
                if isinstance(value, dict):
                    value = value.get("message") or value
                if value:
                    return value
            return payload
        return payload


__all__ = ["TTSProviderClient", "TTSProviderError"]
