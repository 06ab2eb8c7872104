"""Tests for byte sources and content locators."""

import tempfile
from pathlib import Path

import pytest

from binimport.core.source import ByteSource, ContentLocator


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


class TestByteSource:
    """Tests for ByteSource."""

    def test_requires_data_or_path(self) -> None:
        """Test that a source needs something to read."""
        with pytest.raises(ValueError):
            ByteSource()

    def test_streams_are_independent(self) -> None:
        """Test that every open() returns a fresh stream at the requested offset."""
        source = ByteSource.from_bytes(b"abcdef")

        with source.open(2) as first, source.open() as second:
            assert first.read(2) == b"cd"
            assert second.read(2) == b"ab"

        assert source.read_all() == b"abcdef"
        assert source.length == 6
        assert source.absolute_path is None

    def test_file_source(self, temp_dir: Path) -> None:
        """Test a file-backed source and its locator."""
        path = temp_dir / "image with space.bin"
        path.write_bytes(b"\x00" * 10)

        source = ByteSource.from_path(path, md5="ff" * 16)

        assert source.length == 10
        assert source.absolute_path == str(path.resolve())
        assert source.locator is not None
        assert source.locator.declared_name == "image with space.bin"
        assert source.locator.md5 == "ff" * 16


class TestContentLocator:
    """Tests for ContentLocator."""

    def test_string_form(self) -> None:
        """Test the string form with and without an MD5."""
        locator = ContentLocator("/images/my fw.bin")

        assert str(locator) == "file:///images/my%20fw.bin"
        assert str(locator.with_md5("abc")) == "file:///images/my%20fw.bin?MD5=abc"

    def test_parse_round_trip(self) -> None:
        """Test that parse() reads back the string form."""
        locator = ContentLocator("/images/my fw.bin", md5="abc")

        assert ContentLocator.parse(str(locator)) == locator

    def test_parse_rejects_other_schemes(self) -> None:
        """Test that non-file locators are rejected."""
        with pytest.raises(ValueError):
            ContentLocator.parse("http://example.com/fw.bin")
