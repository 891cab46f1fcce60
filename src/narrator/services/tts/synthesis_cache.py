"""Process-wide cache of synthesized chunk audio, keyed by request content."""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

CachedPayloads = tuple[bytes, ...]


class SynthesisCache(Protocol):
    """Key -> payloads mapping with insert-if-absent semantics."""

    def get(self, key: str) -> Optional[CachedPayloads]: ...

    def put_if_absent(self, key: str, payloads: CachedPayloads) -> bool: ...


class InMemorySynthesisCache:
    """Bounded LRU cache.

    Entries are immutable once written. Methods never await, so on a single
    event loop every call is atomic with respect to other requests.
    """

    def __init__(self, max_entries: int = 64) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, CachedPayloads] = OrderedDict()

    def get(self, key: str) -> Optional[CachedPayloads]:
        payloads = self._entries.get(key)
        if payloads is not None:
            self._entries.move_to_end(key)
        return payloads

    def put_if_absent(self, key: str, payloads: CachedPayloads) -> bool:
        if key in self._entries:
            return False
        self._entries[key] = tuple(payloads)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted synthesis cache entry %s", evicted[:12])
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def synthesis_cache_key(
    chunks: Sequence[str],
    *,
    voice_id: str,
    speed: float,
    temperature: float,
    variant: str = "",
) -> str:
    """SHA-256 over every chunk's full text and every output-affecting parameter."""

    digest = hashlib.sha256()
    for part in (voice_id, f"{speed:.4f}", f"{temperature:.4f}", variant):
        digest.update(part.encode("utf-8"))
        digest.update(b"\x1f")
    for text in chunks:
        digest.update(text.encode("utf-8"))
        digest.update(b"\x1e")
    return digest.hexdigest()


__all__ = [
    "CachedPayloads",
    "InMemorySynthesisCache",
    "SynthesisCache",
    "synthesis_cache_key",
]
