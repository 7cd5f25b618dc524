"""
uploader.py — Chunked Upload Client
======================================
HTTP client for the upload node. Splits a file into chunks,
uploads them concurrently and waits until the node reports the
assembled file's digest.
"""

import asyncio
import logging
import random
import time
from pathlib import Path
from typing import List, Optional, Union

import httpx

from upload_node.core.chunker import DEFAULT_CHUNK_SIZE, split_bytes, split_file
from upload_node.core.hashing import file_digest

logger = logging.getLogger(__name__)


class UploadClient:
    """
    Client for the Upload Node REST API.

    Each chunk is sent as its own multipart request, mirroring how
    browsers and other clients drive the endpoint.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the upload client.

        Args:
            base_url: Base URL of the upload node.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used to test in-process).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        logger.info("UploadClient initialized for %s", self.base_url)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        )

    async def upload_chunk(
        self, file_name: str, index: int, total_count: int, data: bytes
    ) -> dict:
        """
        Upload a single chunk.

        Returns:
            The node's JSON response.

        Raises:
            httpx.HTTPStatusError: If the node rejects the chunk.
        """
        async with self._client() as client:
            response = await client.post(
                "/api/upload",
                files={"file": (file_name, data, "application/octet-stream")},
                data={"index": str(index), "totalCount": str(total_count)},
            )
            response.raise_for_status()
            logger.debug("Uploaded chunk %d/%d of %s", index, total_count, file_name)
            return response.json()

    async def upload_chunks(
        self, file_name: str, chunks: List[bytes], shuffle: bool = False
    ) -> List[dict]:
        """
        Upload all chunks of a file concurrently.

        Args:
            file_name: Destination name on the node.
            chunks: Chunk payloads in index order.
            shuffle: Send the requests in random order.

        Returns:
            Node responses, in the order the requests were issued.
        """
        total = len(chunks)
        order = list(range(total))
        if shuffle:
            random.shuffle(order)

        results = await asyncio.gather(
            *(self.upload_chunk(file_name, i, total, chunks[i]) for i in order)
        )
        logger.info("Uploaded %d chunks of %s", total, file_name)
        return list(results)

    async def upload_bytes(
        self, file_name: str, data: bytes, total_count: int, shuffle: bool = False
    ) -> List[dict]:
        """Split in-memory data into ``total_count`` chunks and upload them."""
        return await self.upload_chunks(
            file_name, split_bytes(data, total_count), shuffle=shuffle
        )

    async def upload_file(
        self,
        path: Union[str, Path],
        file_name: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        shuffle: bool = False,
    ) -> List[dict]:
        """Split a local file into fixed-size chunks and upload them."""
        file_name = file_name or Path(path).name
        return await self.upload_chunks(
            file_name, split_file(path, chunk_size), shuffle=shuffle
        )

    async def get_digest(self, file_name: str) -> Optional[str]:
        """
        Fetch the digest of an assembled file.

        Returns:
            Hex digest, or None if the file is not assembled yet.
        """
        async with self._client() as client:
            response = await client.get(
                "/api/upload/hash", params={"fileName": file_name}
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()["digest"]

    async def wait_for_digest(
        self, file_name: str, timeout: float = 30, interval: float = 0.5
    ) -> str:
        """
        Poll until the node reports a digest for the file.

        Raises:
            TimeoutError: If no digest appears within the timeout.
        """
        deadline = time.monotonic() + timeout
        while True:
            digest = await self.get_digest(file_name)
            if digest is not None:
                return digest
            if time.monotonic() >= deadline:
                raise TimeoutError(f"{file_name} was not assembled within {timeout}s")
            await asyncio.sleep(interval)


async def _upload_and_verify(args) -> int:
    client = UploadClient(args.url)
    await client.upload_file(
        args.path, file_name=args.name, chunk_size=args.chunk_size, shuffle=args.shuffle
    )
    expected = file_digest(args.path, args.algorithm)
    actual = await client.wait_for_digest(args.name or Path(args.path).name)

    print(f"Local digest : {expected}")
    print(f"Remote digest: {actual}")
    if expected != actual:
        print("Digest mismatch")
        return 1
    print("Upload verified")
    return 0


def main(argv=None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Upload a file in chunks")
    parser.add_argument("path", help="File to upload")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--name", default=None, help="Destination file name")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    parser.add_argument("--shuffle", action="store_true", help="Upload chunks in random order")
    parser.add_argument("--algorithm", default="md5")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return asyncio.run(_upload_and_verify(args))


if __name__ == "__main__":
    raise SystemExit(main())
