"""
test_client.py — Tests for the Async Upload Client
=====================================================
The client talks to the app in-process through httpx's ASGI
transport; sync endpoints still run in the threadpool, so chunk
requests reach the assembler concurrently.
"""

import asyncio
import hashlib

import httpx
import pytest

from upload_node.api.routes import get_assembler
from upload_node.client.uploader import UploadClient
from upload_node.main import app

TESTO = b"CCC-first line\nAAA-second line\nBBB-third line\n"


@pytest.fixture
def uploader(use_assembler):
    return UploadClient("http://testserver", transport=httpx.ASGITransport(app=app))


class TestUploadClient:
    """Upload and verification through the HTTP API."""

    @pytest.mark.asyncio
    async def test_upload_and_verify(self, uploader):
        await uploader.upload_bytes("testo.txt", TESTO, 3, shuffle=True)
        digest = await uploader.wait_for_digest("testo.txt", timeout=5, interval=0.05)
        assert digest == hashlib.md5(TESTO).hexdigest()

    @pytest.mark.asyncio
    async def test_upload_file(self, uploader, tmp_path, upload_dir):
        source = tmp_path / "notes.txt"
        source.write_bytes(b"0123456789" * 50)
        responses = await uploader.upload_file(source, chunk_size=64)

        assert len(responses) == 8
        assert all(r["status"] == "accepted" for r in responses)
        assert (upload_dir / "notes.txt").read_bytes() == source.read_bytes()

    @pytest.mark.asyncio
    async def test_digest_missing(self, uploader):
        assert await uploader.get_digest("unknown.txt") is None

    @pytest.mark.asyncio
    async def test_wait_times_out(self, uploader):
        await uploader.upload_chunk("partial.txt", 0, 2, b"only half")
        with pytest.raises(TimeoutError):
            await uploader.wait_for_digest("partial.txt", timeout=0.2, interval=0.05)

    @pytest.mark.asyncio
    async def test_rejected_chunk(self, uploader):
        with pytest.raises(httpx.HTTPStatusError) as excinfo:
            await uploader.upload_chunk("virus.exe", 0, 1, b"MZ")
        assert excinfo.value.response.status_code == 400

    @pytest.mark.asyncio
    async def test_hundred_files_in_parallel(self, uploader, staged_files):
        names = [f"testo{n}.txt" for n in range(100)]
        await asyncio.gather(
            *(uploader.upload_bytes(name, TESTO, 3, shuffle=True) for name in names)
        )

        expected = hashlib.md5(TESTO).hexdigest()
        digests = await asyncio.gather(*(uploader.get_digest(name) for name in names))
        assert digests == [expected] * 100
        assert staged_files() == []
