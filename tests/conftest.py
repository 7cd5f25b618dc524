"""Shared pytest fixtures for upload node tests."""

import pytest
from fastapi.testclient import TestClient

from upload_node.api.routes import get_assembler
from upload_node.main import app
from upload_node.services.assembly import ChunkAssembler


@pytest.fixture
def staging_dir(tmp_path):
    """Isolated staging root."""
    return tmp_path / "staging"


@pytest.fixture
def upload_dir(tmp_path):
    """Isolated upload root, separate from staging."""
    return tmp_path / "uploads"


@pytest.fixture
def assembler(staging_dir, upload_dir):
    """Assembler using the isolated roots."""
    return ChunkAssembler(staging_dir=staging_dir, upload_dir=upload_dir)


@pytest.fixture
def use_assembler(assembler):
    """Route the API to the isolated assembler for one test."""
    app.dependency_overrides[get_assembler] = lambda: assembler
    yield assembler
    app.dependency_overrides.clear()


@pytest.fixture
def client(use_assembler):
    """FastAPI test client bound to the isolated assembler."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def staged_files(staging_dir):
    """Callable listing every staged entry left in the staging root."""

    def _list():
        return sorted(
            p.name for p in staging_dir.iterdir()
            if p.name.endswith((".chunk", ".part", ".assembling"))
        )

    return _list
