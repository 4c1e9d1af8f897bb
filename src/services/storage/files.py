"""Byte storage abstraction for segment and joined audio files.

The session machine and the joiner never touch the filesystem directly; they
go through a ``ByteStorage`` so tests (and non-local backends) can swap it.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote, urlparse


def to_local_path(locator: str) -> str:
    """Convert a ``file://`` URI (as emitted by mobile recorders) to a path.

    Plain paths are returned unchanged.
    """
    if locator.startswith("file://"):
        return unquote(urlparse(locator).path)
    return locator


class ByteStorage(ABC):
    """Interface for reading, writing and deleting audio artifacts."""

    @abstractmethod
    def read_bytes(self, locator: str) -> bytes:
        """Return the full contents of ``locator``.

        Raises:
            FileNotFoundError: If nothing exists at ``locator``.
        """

    @abstractmethod
    def exists(self, locator: str) -> bool:
        """Return True if ``locator`` resolves to an existing file."""

    @abstractmethod
    def delete(self, locator: str) -> bool:
        """Delete ``locator``.

        Returns:
            True if a file was removed, False if it did not exist.

        Raises:
            OSError: If the file exists but cannot be removed.
        """

    @abstractmethod
    def open_write(self, locator: str) -> BinaryIO:
        """Open ``locator`` for binary writing, creating parent directories."""


class LocalByteStorage(ByteStorage):
    """``ByteStorage`` backed by the local filesystem."""

    def read_bytes(self, locator: str) -> bytes:
        return Path(to_local_path(locator)).read_bytes()

    def exists(self, locator: str) -> bool:
        return Path(to_local_path(locator)).is_file()

    def delete(self, locator: str) -> bool:
        path = Path(to_local_path(locator))
        if not path.exists():
            return False
        path.unlink()
        return True

    def open_write(self, locator: str) -> BinaryIO:
        path = Path(to_local_path(locator))
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.open("wb")
