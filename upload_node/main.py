"""
main.py — Upload Node Service Entrypoint
===========================================
Runs the FastAPI service that accepts chunked uploads and
assembles them into complete files.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from upload_node.api.routes import router
from upload_node.config import settings

# ── Logging Configuration ─────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("upload-node")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Upload node starting on %s:%d", settings.HOST, settings.PORT)
    logger.info("Staging dir: %s", settings.STAGING_DIR)
    logger.info("Upload dir:  %s", settings.UPLOAD_DIR)
    logger.info("Retention:   %ds", settings.STAGING_RETENTION_SECONDS)
    logger.info("Extensions:  %s", ", ".join(settings.ALLOWED_EXTENSIONS))
    yield
    logger.info("Upload node shutting down")


# ── FastAPI Application ───────────────────────────────────
app = FastAPI(
    title="Chunked Upload Node",
    description=(
        "Accepts files split into numbered chunks, uploaded in any order "
        "and concurrently, and assembles each file exactly once.\n\n"
        "**Upload:** POST each chunk to /api/upload\n\n"
        "**Verify:** poll /api/upload/hash until the digest appears"
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


def run():
    """Start the upload node with uvicorn."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
