"""Client-side helpers: stream decoding, playback cache and controller."""

from .api import SpeechClient, SpeechClientError
from .audio import AudioResource, PlaybackError
from .cache import Fingerprint, PlaybackCache, PlaybackRequest
from .playback import (
    AudioSink,
    PlaybackController,
    PlaybackState,
    ProviderError,
    SubprocessAudioSink,
)
from .sse import ProgressFrame, ServerSentEvent, SSEFrameDecoder, decode_progress

__all__ = [
    "AudioResource",
    "AudioSink",
    "Fingerprint",
    "PlaybackCache",
    "PlaybackController",
    "PlaybackError",
    "PlaybackRequest",
    "PlaybackState",
    "ProgressFrame",
    "ProviderError",
    "SSEFrameDecoder",
    "ServerSentEvent",
    "SpeechClient",
    "SpeechClientError",
    "SubprocessAudioSink",
    "decode_progress",
]
