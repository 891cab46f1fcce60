"""Client-side playback state machine.

    IDLE ──play──▶ LOADING ──terminal audio──▶ PLAYING ◀──resume── PAUSED
      ▲               │                          │  └──pause──────▶┘
      │               └──terminal error──▶ ERRORED
      └────────────── stop / finished / parameters changed

A cache hit skips LOADING. Retrying from ERRORED issues a fresh request.
The sink finishing on its own is noticed by `poll()`, which `play()` calls
first, so replaying a finished request starts it again from the cache.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
import subprocess
from contextlib import aclosing
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol, Sequence

from .audio import AudioResource, PlaybackError
from .cache import Fingerprint, PlaybackCache, PlaybackRequest
from .sse import ProgressFrame

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ERRORED = "errored"


class ProviderError(RuntimeError):
    """The backend reported a synthesis failure."""


class SynthesisSource(Protocol):
    def stream_synthesis(
        self, request: PlaybackRequest
    ) -> AsyncIterator[ProgressFrame]: ...


class AudioSink(Protocol):
    def play(self, resource: AudioResource) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def is_active(self) -> bool: ...


class SubprocessAudioSink:
    """Plays audio through an external command-line player."""

    def __init__(self, command: Optional[Sequence[str]] = None) -> None:
        self._command = list(command or ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"))
        self._process: Optional[subprocess.Popen[bytes]] = None

    def play(self, resource: AudioResource) -> None:
        self.stop()
        executable = shutil.which(self._command[0])
        if executable is None:
            raise PlaybackError(f"Audio player '{self._command[0]}' not found on PATH")
        try:
            self._process = subprocess.Popen(
                [executable, *self._command[1:], str(resource.path())],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise PlaybackError(f"Could not start audio player: {exc}") from exc

    def _signal(self, signum: int) -> None:
        if self._process is not None and self._process.poll() is None:
            os.kill(self._process.pid, signum)

    def pause(self) -> None:
        self._signal(signal.SIGSTOP)

    def resume(self) -> None:
        self._signal(signal.SIGCONT)

    def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        # A stopped process cannot handle SIGTERM until continued.
        os.kill(process.pid, signal.SIGCONT)
        process.terminate()
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            process.kill()

    def is_active(self) -> bool:
        return self._process is not None and self._process.poll() is None


class PlaybackController:
    """
    Drives synthesis requests, the playback cache and the audio sink.

    Starting a request with a different fingerprint abandons whatever was in
    flight; results from abandoned requests are discarded. Provider failures
    surface as ``ProviderError`` and local decode or player failures as
    ``PlaybackError`` on ``error``.
    """

    def __init__(
        self,
        source: SynthesisSource,
        sink: AudioSink,
        *,
        cache: Optional[PlaybackCache] = None,
        on_progress: Optional[Callable[[int], None]] = None,
        on_state_change: Optional[Callable[[PlaybackState], None]] = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self.cache = cache if cache is not None else PlaybackCache()
        self._on_progress = on_progress
        self._on_state_change = on_state_change
        self._state = PlaybackState.IDLE
        self._fingerprint: Optional[Fingerprint] = None
        self._pending: Optional[asyncio.Task[Optional[AudioResource]]] = None
        self._progress = 0
        self.error: Optional[Exception] = None

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def fingerprint(self) -> Optional[Fingerprint]:
        return self._fingerprint

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _report_progress(self, percent: int) -> None:
        # Displayed progress never moves backwards within one request.
        if percent <= self._progress:
            return
        self._progress = min(100, percent)
        if self._on_progress is not None:
            self._on_progress(self._progress)

    def _fail(self, exc: Exception) -> None:
        logger.warning("Playback failed: %s", exc)
        self.error = exc
        self._set_state(PlaybackState.ERRORED)

    def _abandon(self) -> None:
        task, self._pending = self._pending, None
        if task is not None and not task.done():
            task.cancel()
        if self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            self._sink.stop()
        self._set_state(PlaybackState.IDLE)

    async def play(self, request: PlaybackRequest) -> PlaybackState:
        self.poll()
        fingerprint = request.fingerprint
        if fingerprint != self._fingerprint:
            self._abandon()
            self._fingerprint = fingerprint
        elif self._state is PlaybackState.PAUSED:
            self.resume()
            return self._state
        elif self._state in (PlaybackState.PLAYING, PlaybackState.LOADING):
            return self._state

        self.error = None
        cached = self.cache.get(fingerprint)
        if cached is not None:
            logger.debug("Replaying cached audio for %s", fingerprint)
            self._start(cached)
            return self._state

        self._progress = 0
        self._set_state(PlaybackState.LOADING)
        task = asyncio.ensure_future(self._fetch(request))
        self._pending = task
        try:
            resource = await task
        except asyncio.CancelledError:
            if self._pending is not task:
                # Superseded by a newer request or stopped.
                return self._state
            self._pending = None
            raise
        if self._pending is task:
            self._pending = None

        if resource is None:
            return self._state
        if self._fingerprint != fingerprint:
            resource.release()
            return self._state

        self.cache.put(fingerprint, resource)
        self._start(resource)
        return self._state

    async def _fetch(self, request: PlaybackRequest) -> Optional[AudioResource]:
        try:
            async with aclosing(self._source.stream_synthesis(request)) as frames:
                async for frame in frames:
                    self._report_progress(frame.percent_complete)
                    if frame.error is not None:
                        self._fail(ProviderError(frame.error))
                        return None
                    if frame.audio is not None:
                        return AudioResource.from_base64(
                            frame.audio,
                            frame.content_type,
                            duration_seconds=frame.metadata.get("duration"),
                            audio_url=frame.metadata.get("audioUrl"),
                        )
        except PlaybackError as exc:
            self._fail(exc)
            return None
        except RuntimeError as exc:
            self._fail(ProviderError(str(exc)))
            return None

        self._fail(ProviderError("Synthesis stream ended without a result"))
        return None

    def _start(self, resource: AudioResource) -> None:
        try:
            self._sink.play(resource)
        except PlaybackError as exc:
            self._fail(exc)
            return
        self._set_state(PlaybackState.PLAYING)

    def pause(self) -> None:
        if self._state is PlaybackState.PLAYING:
            self._sink.pause()
            self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        if self._state is PlaybackState.PAUSED:
            self._sink.resume()
            self._set_state(PlaybackState.PLAYING)

    def stop(self) -> None:
        self._abandon()

    def is_current(self, request: PlaybackRequest) -> bool:
        """Whether ``request`` is already loading, playing or paused."""

        active = (PlaybackState.LOADING, PlaybackState.PLAYING, PlaybackState.PAUSED)
        return request.fingerprint == self._fingerprint and self.poll() in active

    def poll(self) -> PlaybackState:
        """Return to IDLE once the sink has finished playing."""

        if self._state is PlaybackState.PLAYING and not self._sink.is_active():
            self._set_state(PlaybackState.IDLE)
        return self._state

    def close(self) -> None:
        """Tear down the document view: stop everything and drop cached audio."""

        self._abandon()
        self._fingerprint = None
        self.cache.clear()


__all__ = [
    "AudioSink",
    "PlaybackController",
    "PlaybackState",
    "ProviderError",
    "SubprocessAudioSink",
    "SynthesisSource",
]
