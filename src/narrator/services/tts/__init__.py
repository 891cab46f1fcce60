"""
TTS (Text-to-Speech) Services Package.

This package contains the synthesis pipeline for reading PDF pages aloud:

- text_chunker: Splits page text into provider-sized chunks
- provider: HTTP client for the remote TTS provider
- synthesis_cache: Process-wide cache of synthesized chunk audio
- dispatcher: One provider call per chunk, in order
- assembler: Joins chunk audio into one resource
- progress: Progress events from first frame to terminal frame

Architecture Overview:

    ┌───────────┐     ┌─────────────┐     ┌────────────┐     ┌───────────┐
    │ Page text │────▶│ chunk_text  │────▶│ Dispatcher │────▶│ assemble  │
    └───────────┘     └─────────────┘     └────────────┘     └───────────┘
                                                │                   │
                                                ▼                   ▼
                                         ┌─────────────┐     ┌─────────────┐
                                         │  Provider   │     │ SynthesisJob│
                                         │  POST /tts  │     │   events    │
                                         └─────────────┘     └─────────────┘
                                                                    │
                                                                    ▼
                                                             ┌─────────────┐
                                                             │ SSE stream  │
                                                             └─────────────┘

Progress is reported as 0, then per-chunk percentages capped at 99, then a
single terminal event at 100 carrying the base64 audio or an error message.
"""

from .assembler import (
    AssembledAudio,
    AudioFormatError,
    EmptyAudioError,
    assemble_audio,
)
from .dispatcher import DispatchResult, SpeechRequestDispatcher
from .progress import ProgressEvent, StreamWriteError, SynthesisJob
from .provider import TTSProviderClient, TTSProviderError
from .synthesis_cache import InMemorySynthesisCache, SynthesisCache
from .text_chunker import Chunk, ChunkingError, chunk_text

__all__ = [
    "AssembledAudio",
    "AudioFormatError",
    "Chunk",
    "ChunkingError",
    "DispatchResult",
    "EmptyAudioError",
    "InMemorySynthesisCache",
    "ProgressEvent",
    "SpeechRequestDispatcher",
    "StreamWriteError",
    "SynthesisCache",
    "SynthesisJob",
    "TTSProviderClient",
    "TTSProviderError",
    "assemble_audio",
    "chunk_text",
]
