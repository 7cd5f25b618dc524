"""
staging.py — Chunk Staging Area
==================================
Manages the staging directory where uploaded chunks wait until
their destination's chunk set is complete.

Every slot ``(destination, index)`` maps to one confirmed file,
``{key}.{index}.chunk``, where ``key`` is the SHA-256 of the
destination name so staged names stay short whatever the
destination is called. A chunk is first streamed into a
private ``.part`` file and only renamed onto its slot once the
payload has been fully written and synced, so any file found at a
slot path is a complete chunk. Merges are built the same way in a
private ``.assembling`` file.
"""

import hashlib
import logging
import os
import shutil
import time
import uuid
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from upload_node.exceptions import InvalidChunkError

logger = logging.getLogger(__name__)

CHUNK_SUFFIX = ".chunk"
PART_SUFFIX = ".part"
ASSEMBLING_SUFFIX = ".assembling"
STAGED_SUFFIXES = (CHUNK_SUFFIX, PART_SUFFIX, ASSEMBLING_SUFFIX)

COPY_SIZE = 64 * 1024

Payload = Union[bytes, bytearray, BinaryIO]


class StagingArea:
    """
    Filesystem staging for chunks of incomplete uploads.

    The directory is the only shared state: every operation is safe
    to run concurrently from several threads or processes.
    """

    def __init__(self, data_dir: Union[str, Path]):
        """
        Initialize the staging area.

        Args:
            data_dir: Directory where staged chunks are kept.
        """
        self.data_dir = Path(data_dir)
        self.ensure()
        logger.info("StagingArea initialized at %s", self.data_dir)

    def ensure(self) -> None:
        """Create the staging directory if it does not exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def session_key(destination: str) -> str:
        """Fixed-length key naming a destination's staged files."""
        raw = destination.encode("utf-8", "surrogateescape")
        return hashlib.sha256(raw).hexdigest()

    def slot_path(self, destination: str, index: int) -> Path:
        """Get the confirmed path for a chunk slot."""
        return self.data_dir / f"{self.session_key(destination)}.{index}{CHUNK_SUFFIX}"

    def _private_path(self, stem: str, suffix: str) -> Path:
        return self.data_dir / f"{stem}.{uuid.uuid4().hex}{suffix}"

    # ── Chunk Writes ──────────────────────────────────────

    def write_slot(self, destination: str, index: int, payload: Payload) -> int:
        """
        Atomically store a chunk in its slot, replacing any earlier upload.

        Args:
            destination: Final file name the chunk belongs to.
            index: Zero-based chunk position.
            payload: Chunk bytes or a binary file object to stream from.

        Returns:
            Number of bytes written.

        Raises:
            InvalidChunkError: If the payload is empty or is not a
                binary stream.
            OSError: If the write or the rename fails.
        """
        slot = self.slot_path(destination, index)
        part = self._private_path(f"{self.session_key(destination)}.{index}", PART_SUFFIX)

        written = 0
        try:
            with open(part, "xb") as f:
                if isinstance(payload, (bytes, bytearray)):
                    f.write(payload)
                    written = len(payload)
                else:
                    while True:
                        block = payload.read(COPY_SIZE)
                        if not isinstance(block, (bytes, bytearray)):
                            raise InvalidChunkError("payload must be a binary stream")
                        if not block:
                            break
                        f.write(block)
                        written += len(block)
                f.flush()
                os.fsync(f.fileno())

            if written == 0:
                raise InvalidChunkError("chunk payload is empty")

            os.replace(part, slot)
        except Exception:
            self.remove(part)
            raise

        logger.debug(
            "Staged chunk %d of %s (%d bytes)", index, destination, written
        )
        return written

    # ── Session Queries ───────────────────────────────────

    def is_confirmed(self, destination: str, index: int) -> bool:
        """Check if a complete chunk occupies the slot."""
        return self.slot_path(destination, index).is_file()

    def missing_indices(self, destination: str, total_count: int) -> List[int]:
        """List slot indices in ``[0, total_count)`` without a confirmed chunk."""
        return [
            i for i in range(total_count)
            if not self.is_confirmed(destination, i)
        ]

    def touch_session(self, destination: str, total_count: int) -> None:
        """Refresh slot timestamps so the reaper skips a session being merged."""
        for i in range(total_count):
            try:
                os.utime(self.slot_path(destination, i))
            except FileNotFoundError:
                continue

    # ── Merge Support ─────────────────────────────────────

    def assemble(self, destination: str, total_count: int) -> Path:
        """
        Concatenate all slots, in index order, into a private file.

        Every slot is opened before any is read, so a slot unlinked
        by the reaper mid-merge is still read in full. The caller owns
        the returned file and must remove it.

        Raises:
            OSError: If any chunk cannot be opened or read; nothing is
                left behind.
        """
        target = self._private_path(self.session_key(destination), ASSEMBLING_SUFFIX)
        try:
            with ExitStack() as stack:
                chunks = [
                    stack.enter_context(open(self.slot_path(destination, i), "rb"))
                    for i in range(total_count)
                ]
                with open(target, "xb") as out:
                    for chunk in chunks:
                        shutil.copyfileobj(chunk, out, COPY_SIZE)
                    out.flush()
                    os.fsync(out.fileno())
        except Exception:
            self.remove(target)
            raise
        return target

    def discard_session(self, destination: str, total_count: int) -> int:
        """
        Delete every slot of a session.

        Failures are logged and skipped.

        Returns:
            Number of slots removed.
        """
        removed = 0
        for i in range(total_count):
            if self.remove(self.slot_path(destination, i)):
                removed += 1
        return removed

    def remove(self, path: Path) -> bool:
        """Delete a staged file, returning False if it was absent or stuck."""
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not delete staged file %s: %s", path, e)
            return False

    # ── Reaping ───────────────────────────────────────────

    def reap(self, retention_seconds: float, now: Optional[float] = None) -> int:
        """
        Delete staged entries not modified within the retention window.

        Each entry is judged on its own modification time; a slot of a
        live session that was re-uploaded recently survives even if its
        siblings are reaped.

        Args:
            retention_seconds: Maximum age of a staged entry.
            now: Reference timestamp (defaults to the current time).

        Returns:
            Number of entries deleted.
        """
        if now is None:
            now = time.time()
        cutoff = now - retention_seconds

        reaped = 0
        for entry in self.data_dir.iterdir():
            if not entry.name.endswith(STAGED_SUFFIXES):
                continue
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
            except FileNotFoundError:
                continue
            if self.remove(entry):
                reaped += 1
                logger.debug("Reaped stale staged file %s", entry.name)

        if reaped:
            logger.info("Reaped %d stale staged files from %s", reaped, self.data_dir)
        return reaped

    # ── Introspection ─────────────────────────────────────

    def _staged_files(self) -> List[Path]:
        return [
            f for f in self.data_dir.iterdir()
            if f.name.endswith(STAGED_SUFFIXES) and f.is_file()
        ]

    @property
    def file_count(self) -> int:
        """Number of staged files currently on disk."""
        return len(self._staged_files())

    @property
    def total_size(self) -> int:
        """Total size of staged files in bytes."""
        size = 0
        for f in self._staged_files():
            try:
                size += f.stat().st_size
            except FileNotFoundError:
                continue
        return size
