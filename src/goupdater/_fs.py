"""Filesystem abstraction used by the Extractor and the Path Validator.

Every filesystem primitive the extraction engine needs goes through a
``FileSystem`` object, so tests can observe or replace individual calls
without patching ``os``.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "FileSystem",
    "OSFileSystem",
)

import os
from typing import BinaryIO, Protocol


class FileSystem(Protocol):
    """The narrow set of filesystem operations extraction relies on.

    Implementations raise ``OSError`` (or a subclass) on failure.
    """

    def stat(self, path: str) -> os.stat_result: ...

    def open(self, path: str) -> BinaryIO: ...

    def open_file(self, path: str, flags: int, mode: int) -> BinaryIO: ...

    def mkdir_all(self, path: str, mode: int) -> None: ...

    def chmod(self, path: str, mode: int) -> None: ...

    def symlink(self, target: str, link_path: str) -> None: ...

    def link(self, target: str, link_path: str) -> None: ...

    def lstat(self, path: str) -> os.stat_result: ...

    def eval_symlinks(self, path: str) -> str: ...


class OSFileSystem:
    """``FileSystem`` backed by the real operating system."""

    def stat(self, path: str) -> os.stat_result:
        return os.stat(path)

    def open(self, path: str) -> BinaryIO:
        return open(path, "rb")  # noqa: SIM115

    def open_file(self, path: str, flags: int, mode: int) -> BinaryIO:
        """Open *path* with raw ``os.open`` *flags* for binary writing."""
        fd = os.open(path, flags, mode)
        try:
            return os.fdopen(fd, "wb")
        except Exception:
            os.close(fd)
            raise

    def mkdir_all(self, path: str, mode: int) -> None:
        os.makedirs(path, mode=mode, exist_ok=True)

    def chmod(self, path: str, mode: int) -> None:
        os.chmod(path, mode)

    def symlink(self, target: str, link_path: str) -> None:
        os.symlink(target, link_path)

    def link(self, target: str, link_path: str) -> None:
        os.link(target, link_path)

    def lstat(self, path: str) -> os.stat_result:
        return os.lstat(path)

    def eval_symlinks(self, path: str) -> str:
        """Resolve every symlink in *path*.

        Strict: raises ``OSError`` if any component is missing or a
        symlink loop is found, rather than returning a partly resolved
        path.
        """
        return os.path.realpath(path, strict=True)
