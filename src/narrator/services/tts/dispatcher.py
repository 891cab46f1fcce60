"""Issue one provider request per chunk and yield payloads in narration order."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import deque
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional, Protocol

from fastapi import status

from .provider import TTSProviderError
from .synthesis_cache import SynthesisCache, synthesis_cache_key
from .text_chunker import Chunk

logger = logging.getLogger(__name__)


class SpeechProvider(Protocol):
    output_variant: str

    async def synthesize(
        self,
        text: str,
        *,
        voice: str,
        speed: float = 1.0,
        temperature: float = 1.0,
    ) -> bytes: ...


@dataclass(frozen=True)
class DispatchResult:
    index: int
    payload: bytes
    progress: int


def progress_percent(completed: int, total: int) -> int:
    """Percent complete for ``completed`` of ``total`` chunks, capped at 99."""

    if total <= 0:
        return 0
    return math.floor(min(99.0, completed / total * 100))


class SpeechRequestDispatcher:
    """
    Synthesize a chunk sequence against the TTS provider.

    With ``max_concurrency=1`` (the default) exactly one provider request is
    outstanding at a time. Higher values keep up to that many requests in
    flight, but results are always yielded in chunk order. A failure on any
    chunk cancels the rest and raises ``TTSProviderError``; the request is
    all-or-nothing and nothing partial is cached.
    """

    def __init__(
        self,
        provider: SpeechProvider,
        cache: Optional[SynthesisCache] = None,
        *,
        chunk_timeout: float = 180.0,
        max_concurrency: int = 1,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._provider = provider
        self._cache = cache
        self._chunk_timeout = chunk_timeout
        self._max_concurrency = max_concurrency

    def cache_key(
        self,
        chunks: Iterable[Chunk],
        voice_id: str,
        speed: float,
        temperature: float,
    ) -> str:
        return synthesis_cache_key(
            [chunk.text for chunk in chunks],
            voice_id=voice_id,
            speed=speed,
            temperature=temperature,
            variant=getattr(self._provider, "output_variant", ""),
        )

    async def dispatch(
        self,
        chunks: Iterable[Chunk],
        voice_id: str,
        speed: float = 1.0,
        temperature: float = 1.0,
    ) -> AsyncIterator[DispatchResult]:
        ordered = sorted(chunks, key=lambda chunk: chunk.index)
        total = len(ordered)
        if total == 0:
            return

        key = self.cache_key(ordered, voice_id, speed, temperature)
        cached = self._cache.get(key) if self._cache is not None else None
        if cached is not None and len(cached) == total:
            logger.info("Synthesis cache hit for %d chunk(s) (voice=%s)", total, voice_id)
            for position, payload in enumerate(cached):
                yield DispatchResult(
                    index=ordered[position].index,
                    payload=payload,
                    progress=progress_percent(position + 1, total),
                )
            return

        logger.info(
            "Dispatching %d chunk(s) to TTS provider (voice=%s, speed=%s, temperature=%s)",
            total,
            voice_id,
            speed,
            temperature,
        )
        collected: list[bytes] = []
        async with aclosing(
            self._ordered_payloads(ordered, voice_id, speed, temperature)
        ) as payloads:
            async for index, payload in payloads:
                collected.append(payload)
                if len(collected) == total and self._cache is not None:
                    self._cache.put_if_absent(key, tuple(collected))
                yield DispatchResult(
                    index=index,
                    payload=payload,
                    progress=progress_percent(len(collected), total),
                )

    async def _synthesize_chunk(
        self,
        chunk: Chunk,
        voice_id: str,
        speed: float,
        temperature: float,
    ) -> bytes:
        try:
            return await asyncio.wait_for(
                self._provider.synthesize(
                    chunk.text,
                    voice=voice_id,
                    speed=speed,
                    temperature=temperature,
                ),
                timeout=self._chunk_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TTSProviderError(
                status.HTTP_504_GATEWAY_TIMEOUT,
                f"TTS provider timed out on chunk {chunk.index + 1}",
            ) from exc

    async def _ordered_payloads(
        self,
        chunks: list[Chunk],
        voice_id: str,
        speed: float,
        temperature: float,
    ) -> AsyncIterator[tuple[int, bytes]]:
        upcoming = iter(chunks)
        pending: deque[tuple[int, asyncio.Task[bytes]]] = deque()

        def schedule() -> None:
            while len(pending) < self._max_concurrency:
                chunk = next(upcoming, None)
                if chunk is None:
                    return
                task = asyncio.ensure_future(
                    self._synthesize_chunk(chunk, voice_id, speed, temperature)
                )
                pending.append((chunk.index, task))

        try:
            schedule()
            while pending:
                index, task = pending.popleft()
                try:
                    payload = await task
                except TTSProviderError:
                    logger.warning(
                        "Chunk %d/%d failed; abandoning %d remaining",
                        index + 1,
                        len(chunks),
                        len(chunks) - index - 1,
                    )
                    raise
                yield index, payload
                schedule()
        finally:
            # Cancel synchronously first so no provider call outlives the consumer.
            leftovers = [task for _, task in pending]
            for task in leftovers:
                task.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)


__all__ = [
    "DispatchResult",
    "SpeechProvider",
    "SpeechRequestDispatcher",
    "progress_percent",
]
