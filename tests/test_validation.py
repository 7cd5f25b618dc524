"""
test_validation.py — Unit Tests for Request Validation
=========================================================
"""

import pytest

from upload_node.core.validation import (
    check_chunk_bounds,
    check_destination_name,
    check_extension,
)
from upload_node.exceptions import InvalidChunkError


class TestChunkBounds:
    """Tests for index / totalCount validation."""

    @pytest.mark.parametrize("index,total", [(0, 1), (0, 3), (2, 3)])
    def test_valid(self, index, total):
        check_chunk_bounds(index, total)

    @pytest.mark.parametrize("index,total", [(-1, 3), (3, 3), (5, 3)])
    def test_index_out_of_range(self, index, total):
        with pytest.raises(InvalidChunkError, match="index out of range"):
            check_chunk_bounds(index, total)

    def test_zero_total(self):
        with pytest.raises(InvalidChunkError, match="totalCount"):
            check_chunk_bounds(0, 0)

    @pytest.mark.parametrize("index,total", [(True, 2), ("0", 1), (0, 1.0)])
    def test_non_integers(self, index, total):
        with pytest.raises(InvalidChunkError, match="must be an integer"):
            check_chunk_bounds(index, total)


class TestDestinationName:
    """Tests for destination file name validation."""

    @pytest.mark.parametrize("name", ["testo.txt", "a.b.c.txt", "name with spaces.png"])
    def test_valid(self, name):
        check_destination_name(name)

    @pytest.mark.parametrize(
        "name", ["", "   ", ".", "..", "../escape.txt", "dir/file.txt", "dir\\file.txt", None]
    )
    def test_invalid(self, name):
        with pytest.raises(InvalidChunkError):
            check_destination_name(name)

    def test_length_limit_in_bytes(self):
        check_destination_name("a" * 251 + ".txt")
        with pytest.raises(InvalidChunkError, match="longer than 255 bytes"):
            # 2 bytes per character once encoded
            check_destination_name("é" * 126 + ".txt")


class TestExtension:
    """Tests for the extension allow-list."""

    @pytest.mark.parametrize("name", ["a.txt", "photo.JPG", "x.jpeg", "y.gif", "z.png"])
    def test_allowed(self, name):
        check_extension(name)

    @pytest.mark.parametrize("name", ["run.exe", "archive.tar.gz", "noextension"])
    def test_rejected(self, name):
        with pytest.raises(InvalidChunkError, match="Not allowed file extension"):
            check_extension(name)

    def test_custom_allow_list(self):
        check_extension("data.csv", allowed=(".csv",))
        with pytest.raises(InvalidChunkError):
            check_extension("data.txt", allowed=(".csv",))

