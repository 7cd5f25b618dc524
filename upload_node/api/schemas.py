"""
schemas.py — Pydantic Response Models
========================================
Data models for the Upload Node REST API.
"""

from typing import Optional

from pydantic import BaseModel


class UploadChunkResponse(BaseModel):
    """Response returned once a chunk is durably staged."""

    file_name: str
    index: int
    total_count: int
    size_bytes: int
    status: str = "accepted"
    merge: Optional[str] = None  # What this request observed, if it merged


class DigestResponse(BaseModel):
    """Digest of a fully assembled file."""

    file_name: str
    algorithm: str
    digest: str


class HealthResponse(BaseModel):
    """Upload node health status."""

    status: str
    service: str
    staged_files: int
    staged_bytes: int
