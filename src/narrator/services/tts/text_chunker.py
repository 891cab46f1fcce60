"""
Text Chunker for the Synthesis Pipeline.

Splits extracted page text into ordered pieces that fit the TTS provider's
per-request size limit. Splits happen at sentence boundaries where possible
and fall back to word boundaries for sentences that are too long on their own.
A word is never split.

Usage:
    chunks = chunk_text(page_text, max_size=15000)
    for chunk in chunks:
        print(chunk.index, len(chunk.text))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

# A sentence ends at a run of terminal punctuation followed by whitespace.
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


class ChunkingError(ValueError):
    """Raised when chunking is requested with invalid parameters."""


@dataclass(frozen=True)
class Chunk:
    """A contiguous piece of the source text and its position in the sequence."""

    index: int
    text: str

    def __len__(self) -> int:
        return len(self.text)


def normalize_whitespace(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces and trim the ends."""

    if not text:
        return ""
    return " ".join(text.split())


def split_sentences(text: str) -> List[str]:
    """Split normalized text into sentences, keeping their punctuation."""

    return [part for part in _SENTENCE_BOUNDARY.split(text) if part]


def _pack(units: Iterable[str], max_size: int) -> List[str]:
    """Greedily join units with single spaces without exceeding ``max_size``.

    A unit that is longer than ``max_size`` on its own is emitted as-is.
    """

    pieces: List[str] = []
    buffer = ""
    for unit in units:
        candidate = f"{buffer} {unit}" if buffer else unit
        if len(candidate) <= max_size:
            buffer = candidate
            continue
        if buffer:
            pieces.append(buffer)
        buffer = unit
    if buffer:
        pieces.append(buffer)
    return pieces


def chunk_text(text: Optional[str], max_size: int) -> List[Chunk]:
    """
    Split ``text`` into ordered chunks of at most ``max_size`` characters.

    Args:
        text: Extracted text. ``None`` and whitespace-only input are treated
              as empty.
        max_size: Maximum characters per chunk.

    Returns:
        Ordered chunks. Empty input yields an empty list. Joining the chunk
        texts with single spaces reproduces the whitespace-normalized input.
    """

    if max_size < 1:
        raise ChunkingError(f"max_size must be positive, got {max_size}")

    cleaned = normalize_whitespace(text)
    if not cleaned:
        return []
    if len(cleaned) <= max_size:
        return [Chunk(index=0, text=cleaned)]

    pieces: List[str] = []
    buffer = ""
    for sentence in split_sentences(cleaned):
        candidate = f"{buffer} {sentence}" if buffer else sentence
        if len(candidate) <= max_size:
            buffer = candidate
            continue

        if buffer:
            pieces.append(buffer)
            buffer = ""

        if len(sentence) <= max_size:
            buffer = sentence
            continue

        # Oversized sentence: pack its words, keep the tail open for the
        # next sentence.
        word_pieces = _pack(sentence.split(" "), max_size)
        pieces.extend(word_pieces[:-1])
        buffer = word_pieces[-1]

    if buffer:
        pieces.append(buffer)

    return [Chunk(index=i, text=piece.strip()) for i, piece in enumerate(pieces)]


__all__ = [
    "Chunk",
    "ChunkingError",
    "chunk_text",
    "normalize_whitespace",
    "split_sentences",
]
