"""Utility helpers shared across modules."""

from __future__ import annotations

import mimetypes
from typing import Iterator

DEFAULT_MIME_TYPE = "application/octet-stream"


def byte_ranges(total: int, chunk_size: int) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` offsets covering ``total`` bytes; ``end`` is exclusive."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    for start in range(0, total, chunk_size):
        yield start, min(start + chunk_size, total)


def content_range(start: int, end: int, total: int) -> str:
    """Format a Content-Range header; ``end`` is exclusive, the header's bound is inclusive."""
    return f"bytes {start}-{end - 1}/{total}"


def file_extension(file_name: str | None) -> str | None:
    if not file_name or "." not in file_name:
        return None
    return file_name.rsplit(".", 1)[-1].lower() or None


def guess_mime_type(file_name: str | None) -> str:
    if not file_name:
        return DEFAULT_MIME_TYPE
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or DEFAULT_MIME_TYPE


def split_comma_list(value: str | list[str] | None) -> list[str]:
    """Split a comma-separated string (or pass a list through), dropping blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [entry.strip() for entry in value if entry and entry.strip()]
