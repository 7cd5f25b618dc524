"""
routes.py — Upload Node API Endpoints
========================================
REST API for chunked uploads.

Endpoints:
    POST /api/upload                  — Upload one chunk of a file
    GET  /api/upload/hash?fileName=   — Digest of an assembled file
    GET  /health                      — Health check

Upload responses only confirm that the chunk was stored. Whether
the file has been assembled is learned by polling the hash
endpoint, which answers 404 until the artifact is complete.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from upload_node.api.schemas import DigestResponse, HealthResponse, UploadChunkResponse
from upload_node.config import settings
from upload_node.core.validation import check_chunk_bounds, check_extension
from upload_node.exceptions import InvalidChunkError, StorageError
from upload_node.services.assembly import ChunkAssembler

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Service Instance (initialized lazily) ──────────────
_assembler: Optional[ChunkAssembler] = None


def get_assembler() -> ChunkAssembler:
    """Get or create the chunk assembler singleton."""
    global _assembler
    if _assembler is None:
        _assembler = ChunkAssembler(
            staging_dir=settings.STAGING_DIR,
            upload_dir=settings.UPLOAD_DIR,
            retention_seconds=settings.STAGING_RETENTION_SECONDS,
            digest_algorithm=settings.DIGEST_ALGORITHM,
        )
    return _assembler


# ── Upload Endpoint ────────────────────────────────────

# Plain ``def`` endpoints run in the threadpool, so concurrent
# uploads really hit the assembler concurrently.
@router.post("/api/upload", response_model=UploadChunkResponse)
def upload_chunk(
    file: Optional[UploadFile] = File(None),
    index: int = Form(...),
    totalCount: int = Form(...),
    assembler: ChunkAssembler = Depends(get_assembler),
):
    """
    Store one chunk of a file.

    The uploaded file's name is the destination name shared by all
    chunks of the same file. When this chunk completes the set, the
    file is assembled before the response is sent.
    """
    try:
        check_chunk_bounds(index, totalCount)
        if file is None or not file.filename:
            raise InvalidChunkError("file is null")
        check_extension(file.filename, settings.ALLOWED_EXTENSIONS)

        receipt = assembler.receive_chunk(file.filename, index, totalCount, file.file)
    except InvalidChunkError as e:
        logger.info("Rejected chunk upload: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return UploadChunkResponse(
        file_name=receipt.destination,
        index=receipt.index,
        total_count=receipt.total_count,
        size_bytes=receipt.size,
        status=receipt.outcome.value,
        merge=receipt.merge.value if receipt.merge else None,
    )


# ── Digest Endpoint ────────────────────────────────────

@router.get("/api/upload/hash", response_model=DigestResponse)
def artifact_hash(
    fileName: str = Query(..., description="Name of the assembled file"),
    assembler: ChunkAssembler = Depends(get_assembler),
):
    """Return the digest of a fully assembled file."""
    try:
        digest = assembler.artifact_digest(fileName)
    except InvalidChunkError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if digest is None:
        raise HTTPException(status_code=404, detail="File not found")

    return DigestResponse(
        file_name=fileName,
        algorithm=assembler.digest_algorithm,
        digest=digest,
    )


# ── Health ─────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
def health_check(assembler: ChunkAssembler = Depends(get_assembler)):
    """Health check endpoint for the upload node."""
    return HealthResponse(
        status="healthy",
        service="upload-node",
        staged_files=assembler.staging.file_count,
        staged_bytes=assembler.staging.total_size,
    )
