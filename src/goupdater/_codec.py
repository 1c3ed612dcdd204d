"""Codec abstraction: gzip decompression and a sequential tar-entry cursor.

The default implementation streams through ``tarfile`` in ``"r|"`` mode,
so the archive is read exactly once, front to back, and no member list is
ever materialised in memory.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "ArchiveEntry",
    "DefaultProcessor",
    "EntryType",
    "Processor",
    "TarCursor",
    "TarfileCursor",
)

import gzip
import tarfile
import zlib
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Protocol

from goupdater._exceptions import MalformedArchiveError

# TAR type codes mapped onto the entry kinds the Extractor understands.
_REGULAR_TYPES = {tarfile.REGTYPE, tarfile.AREGTYPE, tarfile.CONTTYPE}

# Errors the gzip/tarfile stack raises for corrupt or truncated input.
# EOFError comes straight from the gzip decompressor and is not wrapped
# by tarfile.
_DECODE_ERRORS = (tarfile.TarError, EOFError, zlib.error, OSError)


class EntryType(Enum):
    """Kind of filesystem object an archive entry describes."""

    DIRECTORY = "directory"
    REGULAR_FILE = "regular_file"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One header read from the tar stream.

    ``name`` and ``linkname`` are attacker-controlled and must be
    validated before use.
    """

    name: str
    entry_type: EntryType
    mode: int = 0o644
    size: int = 0
    linkname: str = ""


def _entry_type_for(info: tarfile.TarInfo) -> EntryType:
    if info.type in _REGULAR_TYPES:
        return EntryType.REGULAR_FILE
    if info.type == tarfile.DIRTYPE:
        return EntryType.DIRECTORY
    if info.type == tarfile.SYMTYPE:
        return EntryType.SYMLINK
    if info.type == tarfile.LNKTYPE:
        return EntryType.HARDLINK
    return EntryType.OTHER


class TarCursor(Protocol):
    """Sequential reader over tar entries."""

    def next(self) -> ArchiveEntry | None:
        """Advance to the next entry; ``None`` at end of archive."""
        ...

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Read data of the current entry into *buffer*; ``0`` at its end."""
        ...


class Processor(Protocol):
    """Factory for the decompressing stream and the tar cursor."""

    def new_gzip_reader(self, stream: BinaryIO) -> BinaryIO: ...

    def new_tar_cursor(self, stream: BinaryIO) -> TarCursor: ...


class TarfileCursor:
    """``TarCursor`` over a streaming ``tarfile.TarFile``.

    The ``TarFile`` is opened lazily on the first ``next()`` call because
    ``tarfile.open`` already reads the first header, and header read
    failures must surface from ``next()``.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._tf: tarfile.TarFile | None = None
        self._data: BinaryIO | None = None

    def next(self) -> ArchiveEntry | None:
        self._close_data()
        try:
            if self._tf is None:
                self._tf = tarfile.open(fileobj=self._stream, mode="r|")
            info = self._tf.next()
        except _DECODE_ERRORS as exc:
            raise MalformedArchiveError(f"Unreadable tar header: {exc}") from exc
        if info is None:
            return None

        entry = ArchiveEntry(
            name=info.name,
            entry_type=_entry_type_for(info),
            mode=info.mode,
            size=info.size,
            linkname=info.linkname,
        )
        if entry.entry_type is EntryType.REGULAR_FILE:
            self._data = self._tf.extractfile(info)  # type: ignore[assignment]
        return entry

    def readinto(self, buffer: bytearray | memoryview) -> int:
        if self._data is None:
            return 0
        try:
            return self._data.readinto(buffer)  # type: ignore[attr-defined]
        except _DECODE_ERRORS as exc:
            raise MalformedArchiveError(
                f"Archive stream error during extraction: {exc}"
            ) from exc

    def close(self) -> None:
        self._close_data()
        if self._tf is not None:
            self._tf.close()
            self._tf = None

    def _close_data(self) -> None:
        if self._data is not None:
            self._data.close()
            self._data = None


class DefaultProcessor:
    """``Processor`` built on the standard ``gzip`` and ``tarfile`` modules."""

    def new_gzip_reader(self, stream: BinaryIO) -> BinaryIO:
        """Wrap *stream* in a gzip decompressor.

        The gzip header is read immediately so that a non-gzip input
        fails here rather than on the first tar header.
        """
        reader = gzip.GzipFile(fileobj=stream, mode="rb")
        try:
            head = reader.peek(1)
        except _DECODE_ERRORS as exc:
            raise MalformedArchiveError(f"failed to create gzip reader: {exc}") from exc
        if not head:
            raise MalformedArchiveError("failed to create gzip reader: empty stream")
        return reader  # type: ignore[return-value]

    def new_tar_cursor(self, stream: BinaryIO) -> TarfileCursor:
        return TarfileCursor(stream)
