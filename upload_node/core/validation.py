"""
validation.py — Chunk Request Validation
===========================================
Checks applied to an incoming chunk before it reaches the
assembly engine: index bounds, destination name shape and the
extension allow-list.
"""

import os
from typing import Iterable

from upload_node.exceptions import InvalidChunkError

DEFAULT_ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".gif", ".png", ".txt")

# NAME_MAX on common filesystems; longer names can never be published
MAX_NAME_BYTES = 255


def check_chunk_bounds(index, total_count) -> None:
    """
    Verify ``0 <= index < total_count`` and ``total_count >= 1``.

    Raises:
        InvalidChunkError: If either value is not an int or is out of range.
    """
    for name, value in (("index", index), ("totalCount", total_count)):
        # bool is an int subclass but never a meaningful position
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidChunkError(f"{name} must be an integer")

    if total_count < 1:
        raise InvalidChunkError("totalCount must be at least 1")
    if index < 0 or index > total_count - 1:
        raise InvalidChunkError("index out of range")


def check_destination_name(name) -> None:
    """
    Verify the destination is a bare, non-empty file name.

    Anything that could escape the staging or upload root (path
    separators, ``.``/``..``, NUL bytes) is rejected. So is a name too
    long to exist as a single directory entry.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidChunkError("file name is empty")
    if name in (".", "..") or "\x00" in name:
        raise InvalidChunkError(f"Invalid file name: {name!r}")

    separators = {"/", "\\", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in name for sep in separators):
        raise InvalidChunkError(f"Invalid file name: {name!r}")

    if len(name.encode("utf-8", "surrogateescape")) > MAX_NAME_BYTES:
        raise InvalidChunkError(f"file name is longer than {MAX_NAME_BYTES} bytes")


def check_extension(
    file_name: str, allowed: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS
) -> None:
    """
    Verify the file name ends in one of the allowed extensions.

    The comparison is case-insensitive.

    Raises:
        InvalidChunkError: If the extension is not allowed.
    """
    extension = os.path.splitext(file_name.lower())[1]
    if extension not in {ext.lower() for ext in allowed}:
        raise InvalidChunkError("Not allowed file extension")
