"""Wire the synthesis pipeline together from application settings."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import Settings
from .audio_store import AudioStore
from .tts.dispatcher import SpeechProvider, SpeechRequestDispatcher
from .tts.progress import SynthesisJob
from .tts.provider import TTSProviderClient
from .tts.synthesis_cache import InMemorySynthesisCache, SynthesisCache

logger = logging.getLogger(__name__)


class SpeechService:
    """Create synthesis jobs that share one provider, cache and audio store."""

    def __init__(
        self,
        settings: Settings,
        *,
        provider: Optional[SpeechProvider] = None,
        cache: Optional[SynthesisCache] = None,
        audio_store: Optional[AudioStore] = None,
    ) -> None:
        self._settings = settings
        self.provider: SpeechProvider = provider or TTSProviderClient(settings)
        self.cache: SynthesisCache = cache or InMemorySynthesisCache(
            settings.synthesis_cache_max_entries
        )
        self.audio_store = audio_store or AudioStore(settings.audio_store_max_entries)
        self.dispatcher = SpeechRequestDispatcher(
            self.provider,
            self.cache,
            chunk_timeout=settings.tts_chunk_timeout_seconds,
            max_concurrency=settings.tts_max_concurrency,
        )
        if settings.tts_api_key is None:
            logger.warning("TTS_API_KEY not configured; provider calls are unauthenticated")

    @property
    def default_voice(self) -> str:
        return self._settings.tts_default_voice

    def create_job(
        self,
        text: str,
        *,
        voice_id: Optional[str],
        speed: float,
        temperature: float,
    ) -> SynthesisJob:
        settings = self._settings
        return SynthesisJob(
            text,
            voice_id=voice_id or settings.tts_default_voice,
            speed=speed,
            temperature=temperature,
            dispatcher=self.dispatcher,
            max_chunk_size=settings.tts_max_chunk_size,
            content_type=settings.tts_content_type,
            output_format=settings.tts_output_format,
            sample_rate=settings.tts_sample_rate,
            bitrate_kbps=settings.tts_bitrate_kbps,
            on_assembled=self.audio_store.put,
        )

    async def shutdown(self) -> None:
        aclose = getattr(self.provider, "aclose", None)
        if aclose is not None:
            await aclose()
        await TTSProviderClient.aclose_shared()


__all__ = ["SpeechService"]
