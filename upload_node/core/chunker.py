"""
chunker.py — File Splitting Module
====================================
Splits a file into numbered chunks for upload. The node never
splits anything itself; clients use these helpers to produce the
``(index, totalCount, payload)`` triples the upload endpoint takes.
"""

import logging
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

# Default chunk size: 1 MB
DEFAULT_CHUNK_SIZE = 1024 * 1024


def split_bytes(data: bytes, total_count: int) -> List[bytes]:
    """
    Split data into exactly ``total_count`` contiguous, non-empty parts.

    Sizes differ by at most one byte; the leading parts take the
    remainder.

    Raises:
        ValueError: If data is empty or total_count is not in [1, len(data)].
    """
    if not data:
        raise ValueError("Cannot split empty data")
    if total_count < 1 or total_count > len(data):
        raise ValueError(
            f"total_count must be between 1 and {len(data)}, got {total_count}"
        )

    base, remainder = divmod(len(data), total_count)
    parts = []
    offset = 0
    for i in range(total_count):
        size = base + (1 if i < remainder else 0)
        parts.append(data[offset : offset + size])
        offset += size

    logger.debug("Split %d bytes into %d parts", len(data), total_count)
    return parts


def split_file(
    path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> List[bytes]:
    """
    Read a file and split it into fixed-size chunks.

    Args:
        path: File to split.
        chunk_size: Size of each chunk in bytes (default 1 MB).

    Returns:
        List of byte chunks. The last chunk may be smaller than chunk_size.

    Raises:
        ValueError: If the file is empty or chunk_size is not positive.
    """
    if chunk_size <= 0:
        raise ValueError("Chunk size must be a positive integer")

    chunks = []
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            chunks.append(chunk)

    if not chunks:
        raise ValueError(f"Cannot split empty file: {path}")

    logger.info(
        "Split %s into %d chunks (chunk_size=%d)", path, len(chunks), chunk_size
    )
    return chunks

