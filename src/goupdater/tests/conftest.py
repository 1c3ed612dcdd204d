"""Archive factory fixtures for goupdater tests.

Every fixture generates a real, crafted ``.tar.gz`` programmatically using
Python's ``tarfile`` and ``gzip`` modules.  Inputs ``tarfile`` cannot
encode (NUL bytes in names) go through ``ListProcessor`` instead.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

import gzip
import io
import os
import tarfile
from pathlib import Path

import pytest

from goupdater import ArchiveEntry, OSFileSystem

# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _tar_gz_bytes(callback) -> bytes:
    """Create a gzip-compressed TAR in memory via *callback(tf)*."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tf:
        callback(tf)
    return gzip.compress(buf.getvalue())


def _write_to_path(tmp_path, name: str, data: bytes) -> str:
    p = tmp_path / name
    p.write_bytes(data)
    return str(p)


def _add_regular(tf, name: str, content: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(content)
    info.mode = mode
    tf.addfile(info, io.BytesIO(content))


def _add_dir(tf, name: str, mode: int = 0o755) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    tf.addfile(info)


def _add_symlink(tf, name: str, target: str) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    tf.addfile(info)


def _add_hardlink(tf, name: str, target: str) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.LNKTYPE
    info.linkname = target
    tf.addfile(info)


def _add_device(tf, name: str, devtype: bytes) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = devtype
    info.devmajor = 1
    info.devminor = 3
    tf.addfile(info)


# ---------------------------------------------------------------------------
# test doubles
# ---------------------------------------------------------------------------

MUTATING_CALLS = frozenset({"open_file", "mkdir_all", "chmod", "symlink", "link"})


class RecordingFileSystem(OSFileSystem):
    """Real filesystem that records every call as ``(method, path)``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def _record(self, method: str, path: str) -> None:
        self.calls.append((method, os.fspath(path)))

    def stat(self, path):
        self._record("stat", path)
        return super().stat(path)

    def open(self, path):
        self._record("open", path)
        return super().open(path)

    def open_file(self, path, flags, mode):
        self._record("open_file", path)
        return super().open_file(path, flags, mode)

    def mkdir_all(self, path, mode):
        self._record("mkdir_all", path)
        super().mkdir_all(path, mode)

    def chmod(self, path, mode):
        self._record("chmod", path)
        super().chmod(path, mode)

    def symlink(self, target, link_path):
        self._record("symlink", link_path)
        super().symlink(target, link_path)

    def link(self, target, link_path):
        self._record("link", link_path)
        super().link(target, link_path)

    def lstat(self, path):
        self._record("lstat", path)
        return super().lstat(path)

    def eval_symlinks(self, path):
        self._record("eval_symlinks", path)
        return super().eval_symlinks(path)

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in MUTATING_CALLS]


class MissingFileSystem(OSFileSystem):
    """Filesystem on which nothing exists for ``lstat``."""

    def lstat(self, path):
        raise FileNotFoundError(path)


class ListCursor:
    """In-memory ``TarCursor`` over ``(ArchiveEntry, data)`` pairs."""

    def __init__(self, entries: list[tuple[ArchiveEntry, bytes]]) -> None:
        self._entries = iter(entries)
        self._data = io.BytesIO()

    def next(self):
        try:
            entry, data = next(self._entries)
        except StopIteration:
            return None
        self._data = io.BytesIO(data)
        return entry

    def readinto(self, buffer):
        return self._data.readinto(buffer)


class ListProcessor:
    """``Processor`` that ignores the archive bytes and replays *entries*."""

    def __init__(self, entries: list[tuple[ArchiveEntry, bytes]]) -> None:
        self._entries = entries

    def new_gzip_reader(self, stream):
        return io.BytesIO(stream.read())

    def new_tar_cursor(self, stream):
        return ListCursor(self._entries)


@pytest.fixture()
def recording_fs():
    return RecordingFileSystem()


@pytest.fixture()
def missing_fs():
    return MissingFileSystem()


@pytest.fixture()
def list_processor():
    """Factory building a ``ListProcessor`` from ``(entry, data)`` pairs."""
    return ListProcessor


@pytest.fixture()
def placeholder_archive(tmp_path):
    """A regular file standing in for an archive read by ``ListProcessor``."""
    return _write_to_path(tmp_path, "placeholder.tar.gz", b"placeholder")


@pytest.fixture()
def dest(tmp_path):
    return tmp_path / "out"


# ---------------------------------------------------------------------------
# legitimate archives
# ---------------------------------------------------------------------------

GOFMT_BYTES = b"#!/bin/sh\necho gofmt\n"
VERSION_BYTES = b"go1.21.0\ntime 2023-08-08T19:43:02Z\n"


@pytest.fixture()
def go_contents():
    """Bytes of the regular files in ``go_archive``."""
    return {"VERSION": VERSION_BYTES, "gofmt": GOFMT_BYTES}


@pytest.fixture()
def go_archive(tmp_path):
    """A miniature Go distribution with every supported entry type.

    Six entries: two directories, two regular files, one symlink and
    one hardlink.
    """

    def build(tf):
        _add_dir(tf, "go/", 0o755)
        _add_dir(tf, "go/bin/", 0o750)
        _add_regular(tf, "go/VERSION", VERSION_BYTES, 0o644)
        _add_regular(tf, "go/bin/gofmt", GOFMT_BYTES, 0o755)
        _add_symlink(tf, "go/bin/fmt", "gofmt")
        _add_hardlink(tf, "go/VERSION.copy", "go/VERSION")

    return _write_to_path(
        tmp_path, "go1.21.0.linux-amd64.tar.gz", _tar_gz_bytes(build)
    )


@pytest.fixture()
def implicit_dirs_archive(tmp_path):
    """Files whose parent directories have no entries of their own."""

    def build(tf):
        _add_regular(tf, "go/src/runtime/proc.go", b"package runtime\n")
        _add_symlink(tf, "go/src/link.go", "runtime/proc.go")

    return _write_to_path(tmp_path, "implicit_dirs.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def empty_file_archive(tmp_path):
    def build(tf):
        _add_regular(tf, "go/empty", b"")

    return _write_to_path(tmp_path, "empty_file.tar.gz", _tar_gz_bytes(build))


# ---------------------------------------------------------------------------
# path traversal archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def traversal_archive(tmp_path):
    """Archive with a relative path traversal entry ``../../evil.txt``."""

    def build(tf):
        _add_regular(tf, "../../evil.txt", b"pwned")

    return _write_to_path(tmp_path, "traversal.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def absolute_path_archive(tmp_path):
    """Archive with an absolute path entry ``/etc/passwd``."""

    def build(tf):
        _add_regular(tf, "/etc/passwd", b"root:x:0:0:")

    return _write_to_path(tmp_path, "absolute.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def backslash_archive(tmp_path):
    def build(tf):
        _add_regular(tf, "go\\evil.txt", b"pwned")

    return _write_to_path(tmp_path, "backslash.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def pax_traversal_archive(tmp_path):
    """Archive with a safe ustar name but malicious PAX path override."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
        info = tarfile.TarInfo(name="safe.txt")
        info.size = 5
        info.pax_headers = {"path": "../../etc/cron.d/evil"}
        tf.addfile(info, io.BytesIO(b"pwned"))
    return _write_to_path(
        tmp_path, "pax_traversal.tar.gz", gzip.compress(buf.getvalue())
    )


# ---------------------------------------------------------------------------
# quota archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def many_files_archive(tmp_path):
    """Archive with six regular files (for testing max_files=5)."""

    def build(tf):
        for i in range(6):
            _add_regular(tf, f"file_{i:04d}.txt", b"x")

    return _write_to_path(tmp_path, "many_files.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def large_member_archive(tmp_path):
    """Archive with a single 100-byte member (for testing max_file_size)."""

    def build(tf):
        _add_regular(tf, "big.bin", b"A" * 100)

    return _write_to_path(tmp_path, "large_member.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def cumulative_archive(tmp_path):
    """Three 40-byte files, 120 bytes in total."""

    def build(tf):
        for i in range(3):
            _add_regular(tf, f"part_{i}.bin", bytes([65 + i]) * 40)

    return _write_to_path(tmp_path, "cumulative.tar.gz", _tar_gz_bytes(build))


# ---------------------------------------------------------------------------
# link archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def symlink_escape_archive(tmp_path):
    """Archive with a symlink pointing outside the extraction root."""

    def build(tf):
        _add_regular(tf, "readme.txt", b"safe content\n")
        _add_symlink(tf, "escape_link", "../outside")

    return _write_to_path(tmp_path, "symlink_escape.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def absolute_symlink_archive(tmp_path):
    def build(tf):
        _add_symlink(tf, "passwd", "/etc/passwd")

    return _write_to_path(tmp_path, "symlink_abs.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def hardlink_external_archive(tmp_path):
    """Archive with a hardlink pointing outside the extraction root."""

    def build(tf):
        _add_hardlink(tf, "evil_link.txt", "/etc/shadow")

    return _write_to_path(tmp_path, "hardlink_external.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def symlink_through_existing_archive(tmp_path):
    """Symlink ``A`` pointing at ``x``, which the test plants beforehand."""

    def build(tf):
        _add_symlink(tf, "A", "x")

    return _write_to_path(tmp_path, "through_symlink.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def hardlink_through_existing_archive(tmp_path):
    """Hardlink ``B`` whose target passes through the planted ``x``."""

    def build(tf):
        _add_hardlink(tf, "B", "x/secret.txt")

    return _write_to_path(tmp_path, "through_hardlink.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def write_through_existing_archive(tmp_path):
    """Regular file ``x/pwned.txt`` written through the planted ``x``."""

    def build(tf):
        _add_regular(tf, "x/pwned.txt", b"pwned")

    return _write_to_path(tmp_path, "through_write.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def chained_links_archive(tmp_path):
    """``A -> data`` followed by ``B -> A/file.txt`` all inside the root."""

    def build(tf):
        _add_dir(tf, "data/")
        _add_regular(tf, "data/file.txt", b"chained\n")
        _add_symlink(tf, "A", "data")
        _add_symlink(tf, "B", "A/file.txt")

    return _write_to_path(tmp_path, "chained.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def planted_escape(dest, tmp_path):
    """Create ``dest/x`` as a symlink to a directory outside *dest*."""
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_bytes(b"secret")
    dest.mkdir()
    os.symlink(outside, dest / "x")
    return outside


# ---------------------------------------------------------------------------
# unsupported entry type archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def char_device_archive(tmp_path):
    """Archive containing a character device entry."""

    def build(tf):
        _add_device(tf, "dev_null", tarfile.CHRTYPE)

    return _write_to_path(tmp_path, "chrdev.tar.gz", _tar_gz_bytes(build))


@pytest.fixture()
def fifo_archive(tmp_path):
    """Archive containing a FIFO entry between two regular files."""

    def build(tf):
        _add_regular(tf, "before.txt", b"before")
        info = tarfile.TarInfo(name="my_fifo")
        info.type = tarfile.FIFOTYPE
        tf.addfile(info)
        _add_regular(tf, "after.txt", b"after")

    return _write_to_path(tmp_path, "fifo.tar.gz", _tar_gz_bytes(build))


# ---------------------------------------------------------------------------
# malformed archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def plain_tar_archive(tmp_path):
    """An uncompressed TAR, which is not a valid .tar.gz."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tf:
        _add_regular(tf, "hello.txt", b"hello")
    return _write_to_path(tmp_path, "plain.tar.gz", buf.getvalue())


@pytest.fixture()
def truncated_archive(tmp_path):
    """A .tar.gz archive truncated mid-member."""

    def build(tf):
        _add_regular(tf, "random.bin", os.urandom(100_000))

    gz_data = _tar_gz_bytes(build)
    return _write_to_path(tmp_path, "truncated.tar.gz", gz_data[: len(gz_data) // 2])


@pytest.fixture()
def real_tmp(tmp_path):
    """``tmp_path`` with any symlinks in it resolved."""
    return Path(os.path.realpath(tmp_path))
