"""
config.py — Upload Node Configuration
========================================
"""

import os


def _split_extensions(raw: str) -> tuple:
    extensions = []
    for item in raw.split(","):
        item = item.strip().lower()
        if not item:
            continue
        if not item.startswith("."):
            item = "." + item
        extensions.append(item)
    return tuple(extensions)


class Settings:
    """Upload node configuration from environment."""

    HOST: str = os.getenv("UPLOAD_NODE_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("UPLOAD_NODE_PORT", "8000"))
    STAGING_DIR: str = os.getenv("STAGING_DIR", "./staging")
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    STAGING_RETENTION_SECONDS: int = int(
        os.getenv("STAGING_RETENTION_SECONDS", "600")
    )  # 10 minutes
    ALLOWED_EXTENSIONS: tuple = _split_extensions(
        os.getenv("ALLOWED_EXTENSIONS", ".jpg,.jpeg,.gif,.png,.txt")
    )
    DIGEST_ALGORITHM: str = os.getenv("DIGEST_ALGORITHM", "md5")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
