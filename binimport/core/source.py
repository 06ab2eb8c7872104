"""Byte sources and content locators."""

from __future__ import annotations

import io
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import BinaryIO
from urllib.parse import parse_qs, quote, unquote, urlsplit

_LOCATOR_SCHEME = "file"


@dataclass(frozen=True)
class ContentLocator:
    """Where a byte source came from, optionally with known checksums."""

    path: str
    name: str | None = None
    md5: str | None = None
    sha256: str | None = None

    @property
    def declared_name(self) -> str:
        """The explicit name, else the last element of the path."""
        if self.name:
            return self.name
        return PurePosixPath(self.path).name

    def with_md5(self, md5: str) -> ContentLocator:
        return replace(self, md5=md5)

    def __str__(self) -> str:
        text = f"{_LOCATOR_SCHEME}://{quote(self.path)}"
        if self.md5:
            text += f"?MD5={self.md5}"
        return text

    @classmethod
    def parse(cls, text: str) -> ContentLocator:
        """Read back the string form produced by str()."""
        parts = urlsplit(text)
        if parts.scheme != _LOCATOR_SCHEME:
            raise ValueError(f"Not a content locator: {text!r}")
        query = parse_qs(parts.query)
        md5 = query.get("MD5", [None])[0]
        return cls(path=unquote(parts.netloc + parts.path), md5=md5)


class ByteSource:
    """Immutable handle to raw bytes, readable any number of times."""

    def __init__(
        self,
        data: bytes | None = None,
        path: Path | None = None,
        locator: ContentLocator | None = None,
    ) -> None:
        if data is None and path is None:
            raise ValueError("ByteSource needs either data or a path")
        self._data = bytes(data) if data is not None else None
        self._path = path.resolve() if path is not None else None
        self.locator = locator

    @classmethod
    def from_path(cls, path: Path, md5: str | None = None) -> ByteSource:
        """Create a file-backed source whose locator points at `path`."""
        path = path.resolve()
        return cls(path=path, locator=ContentLocator(path=path.as_posix(), md5=md5))

    @classmethod
    def from_bytes(
        cls, data: bytes, locator: ContentLocator | None = None
    ) -> ByteSource:
        return cls(data=data, locator=locator)

    @property
    def absolute_path(self) -> str | None:
        if self._path is not None:
            return str(self._path)
        if self.locator is not None:
            return self.locator.path
        return None

    @property
    def length(self) -> int:
        if self._data is not None:
            return len(self._data)
        return self._path.stat().st_size  # type: ignore[union-attr]

    def open(self, offset: int = 0) -> BinaryIO:
        """Open a fresh stream positioned at `offset`. Caller closes it."""
        stream: BinaryIO
        if self._data is not None:
            stream = io.BytesIO(self._data)
        else:
            stream = self._path.open("rb")  # type: ignore[union-attr]
        stream.seek(offset)
        return stream

    def read_all(self) -> bytes:
        with self.open(0) as stream:
            return stream.read()

    def __repr__(self) -> str:
        origin = self.absolute_path or "<memory>"
        return f"ByteSource({origin!r}, length={self.length})"
