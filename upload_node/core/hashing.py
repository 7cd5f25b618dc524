"""
hashing.py — Artifact Digest Module
=====================================
Content digests used to verify that an assembled artifact matches
the file the client split. MD5 is the default because that is what
upload clients compare against; any ``hashlib`` algorithm works.
"""

import hashlib
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

# Read size used when streaming a file through the hash
READ_SIZE = 64 * 1024


def _new_hash(algorithm: str):
    try:
        return hashlib.new(algorithm)
    except ValueError:
        raise ValueError(f"Unsupported digest algorithm: {algorithm}")


def bytes_digest(data: bytes, algorithm: str = "md5") -> str:
    """
    Compute the hex digest of in-memory data.

    Args:
        data: Raw bytes to hash.
        algorithm: Any name accepted by ``hashlib.new``.

    Returns:
        Lowercase hexadecimal digest string.

    Raises:
        TypeError: If data is not bytes.
        ValueError: If the algorithm is unknown.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"Expected bytes, got {type(data).__name__}")

    hasher = _new_hash(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def file_digest(path: Union[str, Path], algorithm: str = "md5") -> str:
    """
    Compute the hex digest of a file without loading it into memory.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the algorithm is unknown.
    """
    hasher = _new_hash(algorithm)
    size = 0
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(READ_SIZE), b""):
            hasher.update(block)
            size += len(block)

    digest = hasher.hexdigest()
    logger.debug("%s(%s) = %s (%d bytes)", algorithm, path, digest, size)
    return digest
