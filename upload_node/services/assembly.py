"""
assembly.py — Chunk Assembly Engine
======================================
Receives numbered chunks for a destination file, detects when the
full set has arrived and merges it into the final artifact exactly
once, even when chunks arrive out of order, concurrently, or more
than once.

Synchronization relies only on filesystem primitives:
    - chunks are published onto their slot with an atomic rename
    - the artifact is built privately and published with a hard
      link, which fails if another caller published first

so the engine stays correct across threads and across processes
sharing the same directories.
"""

import errno
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from upload_node.core.hashing import bytes_digest, file_digest
from upload_node.core.validation import check_chunk_bounds, check_destination_name
from upload_node.exceptions import InvalidChunkError, MergeConflict, StorageError
from upload_node.services.staging import COPY_SIZE, Payload, StagingArea

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 10 * 60

# link() errors meaning "no hard links here" rather than a real failure
_LINK_UNSUPPORTED = {errno.EXDEV, errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP}

# copies waiting to be linked into the upload root
PUBLISHING_SUFFIX = ".publishing"


class ReceiveOutcome(str, Enum):
    ACCEPTED = "accepted"


class MergeOutcome(str, Enum):
    MERGED = "merged"
    ALREADY_DONE = "already_done"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkReceipt:
    """
    Result of staging one chunk.

    ``merge`` is whatever this call observed when it found the set
    complete (None if it was not). Other requests race on the same
    destination, so only the artifact digest says whether assembly
    has finished.
    """

    destination: str
    index: int
    total_count: int
    size: int
    outcome: ReceiveOutcome = ReceiveOutcome.ACCEPTED
    merge: Optional[MergeOutcome] = None


class ChunkAssembler:
    """
    Stages chunks and assembles complete chunk sets into artifacts.
    """

    def __init__(
        self,
        staging_dir: Union[str, Path],
        upload_dir: Union[str, Path],
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        digest_algorithm: str = "md5",
    ):
        """
        Initialize the assembler.

        Args:
            staging_dir: Directory for chunks of incomplete uploads.
            upload_dir: Directory holding only finished artifacts.
            retention_seconds: Age after which staged files are reaped.
            digest_algorithm: hashlib algorithm used for artifact digests.

        Raises:
            ValueError: If the directories overlap, the retention window
                is not positive, or the algorithm is unknown.
        """
        staging = Path(staging_dir).resolve()
        upload = Path(upload_dir).resolve()
        if staging == upload or staging in upload.parents or upload in staging.parents:
            raise ValueError(
                f"Staging dir {staging} and upload dir {upload} must not overlap"
            )
        if retention_seconds <= 0:
            raise ValueError("retention_seconds must be positive")
        bytes_digest(b"", digest_algorithm)

        self.upload_dir = upload
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.staging = StagingArea(staging)
        self.retention_seconds = retention_seconds
        self.digest_algorithm = digest_algorithm
        logger.info(
            "ChunkAssembler ready (staging=%s, uploads=%s, retention=%ss)",
            staging, upload, retention_seconds,
        )

    def artifact_path(self, destination: str) -> Path:
        """Get the published path of a destination's artifact."""
        return self.upload_dir / destination

    def artifact_exists(self, destination: str) -> bool:
        check_destination_name(destination)
        return self.artifact_path(destination).is_file()

    # ── Receive ───────────────────────────────────────────

    def receive_chunk(
        self, destination: str, index: int, total_count: int, payload: Payload
    ) -> ChunkReceipt:
        """
        Stage one chunk and merge the destination if its set is complete.

        Args:
            destination: Final file name; also groups the chunks.
            index: Zero-based chunk position.
            total_count: Number of chunks the file was split into.
            payload: Chunk bytes or a binary file object.

        Returns:
            A receipt with outcome ACCEPTED.

        Raises:
            InvalidChunkError: If any argument is malformed. Nothing is
                written in that case.
            StorageError: If the chunk could not be persisted. Retrying
                the same chunk is safe.
        """
        check_destination_name(destination)
        check_chunk_bounds(index, total_count)
        if payload is None:
            raise InvalidChunkError("file is null")
        if not isinstance(payload, (bytes, bytearray)) and not hasattr(payload, "read"):
            raise InvalidChunkError(
                f"payload must be bytes or a binary stream, got {type(payload).__name__}"
            )
        if isinstance(payload, (bytes, bytearray)) and not payload:
            raise InvalidChunkError("chunk payload is empty")

        try:
            self.staging.ensure()
        except OSError as e:
            raise StorageError(f"Staging directory unavailable: {e}") from e

        self.reap()

        try:
            size = self.staging.write_slot(destination, index, payload)
        except OSError as e:
            logger.error(
                "Failed to stage chunk %d/%d of %s: %s",
                index, total_count, destination, e,
            )
            raise StorageError(
                f"Failed to store chunk {index} of {destination}: {e}"
            ) from e

        missing = self.staging.missing_indices(destination, total_count)
        if missing:
            logger.debug(
                "Chunk %d/%d of %s stored, %d still missing",
                index, total_count, destination, len(missing),
            )
            return ChunkReceipt(destination, index, total_count, size)

        logger.debug("All %d chunks of %s present, merging", total_count, destination)
        outcome = self.merge(destination, total_count)
        return ChunkReceipt(destination, index, total_count, size, merge=outcome)

    # ── Merge ─────────────────────────────────────────────

    def merge(self, destination: str, total_count: int) -> MergeOutcome:
        """
        Assemble a destination's chunks into its artifact, at most once.

        Safe to call concurrently for the same destination: exactly
        one caller publishes, every other caller gets ALREADY_DONE.
        Where hard links are available the artifact path never holds a
        partial file. A failed merge publishes nothing and keeps the
        chunks.
        """
        check_destination_name(destination)
        check_chunk_bounds(0, total_count)

        target = self.artifact_path(destination)
        if target.exists():
            logger.info("Artifact %s already exists, skipping merge", destination)
            return MergeOutcome.ALREADY_DONE

        self.staging.touch_session(destination, total_count)

        try:
            assembled = self.staging.assemble(destination, total_count)
        except OSError as e:
            if target.exists():
                logger.info("Merge of %s completed by another request", destination)
                return MergeOutcome.ALREADY_DONE
            logger.error(
                "Merge of %s failed while reading chunks, nothing published: %s",
                destination, e,
            )
            return MergeOutcome.FAILED

        try:
            self._publish(assembled, target)
        except MergeConflict:
            logger.info("Lost merge race for %s, keeping winner's artifact", destination)
            return MergeOutcome.ALREADY_DONE
        except OSError as e:
            logger.error("Could not publish artifact %s: %s", destination, e)
            return MergeOutcome.FAILED
        finally:
            self.staging.remove(assembled)

        removed = self.staging.discard_session(destination, total_count)
        logger.info(
            "Merged %d chunks into %s (%d staged chunks removed)",
            total_count, target, removed,
        )
        return MergeOutcome.MERGED

    def _publish(self, source: Path, target: Path) -> None:
        """
        Make a fully written file visible at target unless one exists.

        When the staging root is on another filesystem the file is first
        copied next to the target and linked from there. Only when the
        upload root has no hard links at all is the target written in
        place.

        Raises:
            MergeConflict: If the target already exists.
            OSError: If publication failed for another reason.
        """
        try:
            self._link(source, target)
            return
        except OSError as e:
            if e.errno not in _LINK_UNSUPPORTED:
                raise
            cross_device = e.errno == errno.EXDEV
            logger.warning("Cannot hard link %s into %s: %s", source.name, target.parent, e)

        if cross_device:
            local = self.upload_dir / f".{uuid.uuid4().hex}{PUBLISHING_SUFFIX}"
            self._copy_new(source, local)
            try:
                self._link(local, target)
                return
            except OSError as e:
                if e.errno not in _LINK_UNSUPPORTED:
                    raise
                logger.warning("No hard links in %s, copying in place", target.parent)
            finally:
                self.staging.remove(local)

        try:
            self._copy_new(source, target)
        except FileExistsError:
            raise MergeConflict(f"{target.name} was published by another request") from None

    @staticmethod
    def _link(source: Path, target: Path) -> None:
        try:
            os.link(source, target)
        except FileExistsError:
            raise MergeConflict(f"{target.name} was published by another request") from None

    @staticmethod
    def _copy_new(source: Path, target: Path) -> None:
        """Copy source into a newly created target, removing it on failure."""
        out = open(target, "xb")
        try:
            with out, open(source, "rb") as src:
                shutil.copyfileobj(src, out, COPY_SIZE)
                out.flush()
                os.fsync(out.fileno())
        except OSError:
            # we created it, so nobody else can own this partial file
            try:
                target.unlink()
            except OSError as e:
                logger.error(
                    "Partial file %s could not be removed, manual cleanup needed: %s",
                    target, e,
                )
            raise

    # ── Maintenance ───────────────────────────────────────

    def reap(self) -> int:
        """Delete staged files older than the retention window."""
        try:
            return self.staging.reap(self.retention_seconds)
        except OSError as e:
            logger.warning("Reaping %s failed: %s", self.staging.data_dir, e)
            return 0

    # ── Digest ────────────────────────────────────────────

    def artifact_digest(self, destination: str) -> Optional[str]:
        """
        Digest of a destination's artifact.

        Returns:
            Lowercase hex digest, or None if no artifact is published.
        """
        check_destination_name(destination)
        try:
            return file_digest(self.artifact_path(destination), self.digest_algorithm)
        except FileNotFoundError:
            return None
