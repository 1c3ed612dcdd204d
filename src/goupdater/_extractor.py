"""Extractor: validated, quota-enforced extraction of a Go ``.tar.gz``.

The archive is read as a single forward stream.  Each header passes the
quota checks and the Path Validator before anything touches the
filesystem, then it is dispatched by entry type.

Extraction is not transactional: entries written before a failing entry
stay on disk.  Extract into a fresh directory and move it into place
only once ``extract()`` returns.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "ExtractionSession",
    "Extractor",
    "extract",
    "validate",
)

import hashlib
import logging
import os
import stat
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from goupdater._codec import (
    ArchiveEntry,
    DefaultProcessor,
    EntryType,
    Processor,
    TarCursor,
)
from goupdater._config import ExtractionLimits
from goupdater._events import SecurityEvent
from goupdater._exceptions import (
    ArchiveNotRegularError,
    ExtractionCancelledError,
    ExtractionError,
    FileCountExceededError,
    FileSizeExceededError,
    MalformedArchiveError,
    SecurityError,
    TotalSizeExceededError,
    ValidationError,
)
from goupdater._fs import FileSystem, OSFileSystem
from goupdater._validator import (
    resolve_and_validate_path,
    validate_containment,
    validate_header_name,
    validate_linkname,
)

log = logging.getLogger("goupdater.archive")
security_log = logging.getLogger("goupdater.security")

DEFAULT_DIR_PERM = 0o755
DEFAULT_FILE_PERM = 0o644
UNIX_PERM_MASK = 0o777

_WRITE_FLAGS = os.O_CREAT | os.O_WRONLY | os.O_TRUNC


@dataclass(slots=True)
class ExtractionSession:
    """Running state of one ``Extractor.extract()`` call."""

    dest_dir_clean: str
    dest_dir_real: str
    files_seen: int = 0
    bytes_seen: int = 0


class Extractor:
    """Secure extractor for gzip-compressed tar archives.

    :param fs: Filesystem implementation.  Defaults to ``OSFileSystem``.
    :param processor: Codec implementation.  Defaults to
        ``DefaultProcessor``.
    :param limits: Quota configuration.  Defaults to ``ExtractionLimits()``.
    :param on_security_event: Optional callback invoked whenever a
        ``SecurityError`` aborts an extraction.
    """

    def __init__(
        self,
        fs: FileSystem | None = None,
        processor: Processor | None = None,
        limits: ExtractionLimits | None = None,
        *,
        on_security_event: Callable[[SecurityEvent], None] | None = None,
    ) -> None:
        self._fs: FileSystem = fs if fs is not None else OSFileSystem()
        self._processor: Processor = (
            processor if processor is not None else DefaultProcessor()
        )
        self._limits = limits if limits is not None else ExtractionLimits()
        self._on_security_event = on_security_event

    @property
    def limits(self) -> ExtractionLimits:
        return self._limits

    # ---- pre-flight --------------------------------------------------------

    def validate(
        self,
        archive_path: str | os.PathLike[str],
        dest_dir: str | os.PathLike[str],
    ) -> None:
        """Check that *archive_path* exists and is a regular file.

        Does not open or decode the archive.
        """
        archive_path = os.fspath(archive_path)
        dest_dir = os.fspath(dest_dir)
        log.debug("Validating archive %s for destination %s", archive_path, dest_dir)

        try:
            info = self._fs.stat(archive_path)
        except OSError as exc:
            log.debug("Stat failed for %s: %s", archive_path, exc)
            raise ExtractionError(
                archive_path,
                dest_dir,
                "validating archive",
                ValidationError(archive_path, "file existence", exc),
            ) from exc

        if not stat.S_ISREG(info.st_mode):
            log.debug("%s is not a regular file", archive_path)
            raise ExtractionError(
                archive_path,
                dest_dir,
                "validating archive",
                ValidationError(
                    archive_path,
                    "regular file type",
                    ArchiveNotRegularError("archive path is not a regular file"),
                ),
            )

    # ---- extraction --------------------------------------------------------

    def extract(
        self,
        archive_path: str | os.PathLike[str],
        dest_dir: str | os.PathLike[str],
        *,
        cancel: threading.Event | None = None,
    ) -> ExtractionSession:
        """Extract *archive_path* into *dest_dir*.

        :param cancel: Optional flag checked before each entry; once set,
            extraction stops with an ``ExtractionError`` whose cause is
            ``ExtractionCancelledError``.
        :returns: The finished session with its entry and byte counters.
        :raises ExtractionError: On any failure; the cause chain holds
            the ``SecurityError``, ``ValidationError`` or I/O error.
        """
        started = time.monotonic()
        archive_path = os.path.normpath(os.fspath(archive_path))
        dest_dir = os.fspath(dest_dir)
        dest_dir_clean = os.path.abspath(dest_dir)

        self.validate(archive_path, dest_dir)

        try:
            self._fs.mkdir_all(dest_dir_clean, DEFAULT_DIR_PERM)
            dest_dir_real = os.path.normpath(self._fs.eval_symlinks(dest_dir_clean))
        except OSError as exc:
            raise ExtractionError(
                archive_path, dest_dir, "creating destination directory", exc
            ) from exc

        session = ExtractionSession(
            dest_dir_clean=dest_dir_clean,
            dest_dir_real=dest_dir_real,
        )
        log.debug("Extracting %s into %s", archive_path, dest_dir_clean)

        try:
            archive = self._fs.open(archive_path)
        except OSError as exc:
            raise ExtractionError(
                archive_path, dest_dir, "opening archive file", exc
            ) from exc

        with archive:
            try:
                stream = self._processor.new_gzip_reader(archive)
            except (MalformedArchiveError, OSError) as exc:
                raise ExtractionError(
                    archive_path, dest_dir, "creating gzip reader", exc
                ) from exc

            with stream:
                cursor = self._processor.new_tar_cursor(stream)
                try:
                    self._run(cursor, session, archive_path, dest_dir, cancel)
                finally:
                    close = getattr(cursor, "close", None)
                    if close is not None:
                        close()

        log.debug(
            "Extracted %d entries (%d bytes) from %s in %.2fs",
            session.files_seen,
            session.bytes_seen,
            archive_path,
            time.monotonic() - started,
        )
        return session

    # ---- internal ----------------------------------------------------------

    def _run(
        self,
        cursor: TarCursor,
        session: ExtractionSession,
        archive_path: str,
        dest_dir: str,
        cancel: threading.Event | None,
    ) -> None:
        """Entry loop.  Wraps every failure in a single ``ExtractionError``."""
        entry: ArchiveEntry | None = None
        try:
            while True:
                entry = None
                if cancel is not None and cancel.is_set():
                    raise _Phase(
                        "checking cancellation",
                        ExtractionCancelledError(
                            f"cancelled after {session.files_seen} entries"
                        ),
                    )

                try:
                    entry = cursor.next()
                except (MalformedArchiveError, OSError) as exc:
                    raise _Phase("reading tar header", exc) from exc
                if entry is None:
                    return

                self._process_entry(cursor, entry, session)
        except _Phase as phase:
            cause = phase.cause
            if isinstance(cause, SecurityError):
                self._report_violation(cause, entry, archive_path)
            raise ExtractionError(
                archive_path, dest_dir, phase.context, cause
            ) from cause

    def _process_entry(
        self,
        cursor: TarCursor,
        entry: ArchiveEntry,
        session: ExtractionSession,
    ) -> None:
        limits = self._limits
        log.debug("Processing tar entry: %s", entry.name)

        session.files_seen += 1
        if session.files_seen > limits.max_files:
            raise _Phase(
                "validating file count",
                FileCountExceededError(
                    f"Archive contains more than {limits.max_files} entries"
                ),
            )

        if entry.entry_type is EntryType.REGULAR_FILE:
            if entry.size > limits.max_file_size:
                raise _Phase(
                    "validating file size",
                    FileSizeExceededError(
                        f"Entry declares {entry.size} bytes, exceeding "
                        f"max_file_size ({limits.max_file_size})"
                    ),
                )
            session.bytes_seen += entry.size
            if session.bytes_seen > limits.max_total_size:
                raise _Phase(
                    "validating total size",
                    TotalSizeExceededError(
                        f"Cumulative size {session.bytes_seen} exceeds "
                        f"max_total_size ({limits.max_total_size})"
                    ),
                )

        with _phase("validating header name"):
            validate_header_name(entry.name)

        target_path = os.path.normpath(
            session.dest_dir_clean + os.sep + entry.name
        )
        with _phase("validating target path within destination"):
            validate_containment(target_path, session.dest_dir_clean)
        with _phase("validating resolved path"):
            resolve_and_validate_path(
                target_path,
                session.dest_dir_clean,
                self._fs,
                dest_dir_real=session.dest_dir_real,
            )

        match entry.entry_type:
            case EntryType.DIRECTORY:
                with _phase("extracting directory"):
                    self._extract_directory(target_path, entry.mode)
            case EntryType.REGULAR_FILE:
                with _phase("extracting file"):
                    self._extract_regular_file(cursor, target_path, entry)
            case EntryType.SYMLINK:
                self._extract_symlink(target_path, entry.linkname, session)
            case EntryType.HARDLINK:
                self._extract_hardlink(target_path, entry.linkname, session)
            case _:
                log.debug("Skipping unsupported entry type: %s", entry.name)

    def _extract_directory(self, target_path: str, mode: int) -> None:
        self._fs.mkdir_all(target_path, DEFAULT_DIR_PERM)
        self._fs.chmod(target_path, mode & UNIX_PERM_MASK)

    def _extract_regular_file(
        self,
        cursor: TarCursor,
        target_path: str,
        entry: ArchiveEntry,
    ) -> None:
        """Create the file permissively, copy its data, then tighten the mode."""
        self._fs.mkdir_all(os.path.dirname(target_path), DEFAULT_DIR_PERM)

        buffer = bytearray(min(self._limits.buffer_size, max(entry.size, 1)))
        view = memoryview(buffer)
        remaining = entry.size
        with self._fs.open_file(target_path, _WRITE_FLAGS, DEFAULT_FILE_PERM) as out:
            while remaining > 0:
                count = cursor.readinto(view[: min(len(buffer), remaining)])
                if not count:
                    raise MalformedArchiveError(
                        f"unexpected end of data: {remaining} of "
                        f"{entry.size} bytes missing"
                    )
                out.write(view[:count])
                remaining -= count

        self._fs.chmod(target_path, entry.mode & UNIX_PERM_MASK)

    def _extract_symlink(
        self,
        target_path: str,
        linkname: str,
        session: ExtractionSession,
    ) -> None:
        # A symlink target is relative to the directory holding the link.
        with _phase("validating symlink target"):
            validate_linkname(
                linkname,
                os.path.dirname(target_path),
                session.dest_dir_clean,
                self._fs,
                dest_dir_real=session.dest_dir_real,
            )
        with _phase("extracting symlink"):
            self._fs.mkdir_all(os.path.dirname(target_path), DEFAULT_DIR_PERM)
            self._fs.symlink(linkname, target_path)

    def _extract_hardlink(
        self,
        target_path: str,
        linkname: str,
        session: ExtractionSession,
    ) -> None:
        # Hardlink names are relative to the archive root.
        with _phase("validating linkname for hard link"):
            source = validate_linkname(
                linkname,
                session.dest_dir_clean,
                session.dest_dir_clean,
                self._fs,
                dest_dir_real=session.dest_dir_real,
            )
        with _phase("extracting hard link"):
            self._fs.mkdir_all(os.path.dirname(target_path), DEFAULT_DIR_PERM)
            self._fs.link(source, target_path)

    def _report_violation(
        self,
        error: SecurityError,
        entry: ArchiveEntry | None,
        archive_path: str,
    ) -> None:
        """Log the violation and invoke the on_security_event callback."""
        security_log.warning("Security violation: %s", error)
        if self._on_security_event is None:
            return

        try:
            event = SecurityEvent(
                event_type=_event_type_for(entry),
                validation=error.validation,
                archive_hash=self._archive_hash(archive_path),
                timestamp=time.time(),
            )
            self._on_security_event(event)
        except Exception:
            security_log.exception("on_security_event callback raised an exception")

    def _archive_hash(self, archive_path: str) -> str:
        """Return the first 16 hex chars of the SHA-256 of the archive."""
        h = hashlib.sha256()
        with self._fs.open(archive_path) as fobj:
            while True:
                chunk = fobj.read(65536)
                if not chunk:
                    break
                h.update(chunk)
        return h.hexdigest()[:16]


class _Phase(Exception):
    """Carries a failure out of the entry loop together with its context."""

    def __init__(self, context: str, cause: BaseException) -> None:
        super().__init__(context)
        self.context = context
        self.cause = cause


class _phase:
    """Context manager turning failures inside a block into ``_Phase``."""

    __slots__ = ("_context",)

    def __init__(self, context: str) -> None:
        self._context = context

    def __enter__(self) -> None:
        return None

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None or isinstance(exc, _Phase):
            return False
        if isinstance(exc, (SecurityError, MalformedArchiveError, OSError)):
            raise _Phase(self._context, exc) from exc
        return False


def _event_type_for(entry: ArchiveEntry | None) -> str:
    """Derive a security event type string from the entry."""
    if entry is None:
        return "security_violation"
    if entry.entry_type is EntryType.SYMLINK:
        return "symlink_violation"
    if entry.entry_type is EntryType.HARDLINK:
        return "hardlink_violation"
    if entry.entry_type is EntryType.DIRECTORY:
        return "directory_violation"
    return "security_violation"


# ---- module-level convenience ----------------------------------------------


def validate(
    archive_path: str | os.PathLike[str],
    dest_dir: str | os.PathLike[str],
) -> None:
    """Pre-flight check of *archive_path* with a default ``Extractor``."""
    Extractor().validate(archive_path, dest_dir)


def extract(
    archive_path: str | os.PathLike[str],
    dest_dir: str | os.PathLike[str],
    **kwargs: object,
) -> ExtractionSession:
    """Extract *archive_path* into *dest_dir* using ``Extractor`` defaults.

    Keyword arguments are forwarded to ``Extractor.extract()``.
    """
    return Extractor().extract(archive_path, dest_dir, **kwargs)  # type: ignore[arg-type]
