"""Utility helpers for narrator services."""

from .filenames import build_storage_name, slugify_filename
from .http_ranges import ByteRange, parse_byte_range

__all__ = ["ByteRange", "build_storage_name", "parse_byte_range", "slugify_filename"]
