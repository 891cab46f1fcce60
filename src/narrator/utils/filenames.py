"""Filename normalization for stored documents."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def slugify_filename(name: Optional[str], *, max_length: int = 60) -> str:
    """Lowercase ASCII slug of the file stem, or ``""`` when nothing usable remains."""

    if not name:
        return ""
    slug = _NON_ALNUM.sub("-", Path(name).stem).strip("-").lower()
    if max_length > 0 and len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


def build_storage_name(
    document_id: str,
    extension: str,
    original_filename: Optional[str],
) -> str:
    """Stored filename: the document id, then ``__<slug>`` when one can be derived.

    Names always start with the id so lookups stay stable.
    """

    slug = slugify_filename(original_filename)
    if slug:
        return f"{document_id}__{slug}{extension}"
    return f"{document_id}{extension}"


__all__ = ["build_storage_name", "slugify_filename"]
