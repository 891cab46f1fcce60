"""Keep recently synthesized audio around for range-request playback."""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from typing import Optional

from .tts.assembler import AssembledAudio

logger = logging.getLogger(__name__)


class AudioStore:
    """Bounded in-memory LRU of assembled audio keyed by content digest."""

    def __init__(self, max_entries: int = 32) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._items: OrderedDict[str, AssembledAudio] = OrderedDict()

    @staticmethod
    def audio_id_for(audio: AssembledAudio) -> str:
        return hashlib.sha256(audio.data).hexdigest()[:32]

    def put(self, audio: AssembledAudio) -> str:
        audio_id = self.audio_id_for(audio)
        self._items[audio_id] = audio
        self._items.move_to_end(audio_id)
        while len(self._items) > self._max_entries:
            evicted, _ = self._items.popitem(last=False)
            logger.debug("Evicted stored audio %s", evicted)
        return audio_id

    def get(self, audio_id: str) -> Optional[AssembledAudio]:
        audio = self._items.get(audio_id)
        if audio is not None:
            self._items.move_to_end(audio_id)
        return audio

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["AudioStore"]
