"""Parsing of single HTTP ``Range: bytes=...`` headers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_RANGE_PATTERN = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def parse_byte_range(header: Optional[str], size: int) -> Optional[ByteRange]:
    """
    Resolve a single-range header against a resource of ``size`` bytes.

    Supports ``bytes=a-b``, ``bytes=a-`` and ``bytes=-n``. An end past the
    resource is clamped. Returns ``None`` for a missing, malformed,
    multi-range or unsatisfiable header; callers then serve the whole body.
    """

    if not header or size <= 0:
        return None
    match = _RANGE_PATTERN.match(header)
    if match is None:
        return None

    raw_start, raw_end = match.groups()
    if not raw_start and not raw_end:
        return None

    if not raw_start:
        suffix = int(raw_end)
        if suffix == 0:
            return None
        return ByteRange(start=max(0, size - suffix), end=size - 1)

    start = int(raw_start)
    end = int(raw_end) if raw_end else size - 1
    if start >= size or end < start:
        return None
    return ByteRange(start=start, end=min(end, size - 1))


__all__ = ["ByteRange", "parse_byte_range"]
