"""Exception hierarchy for goupdater.

All exceptions inherit from ``GoupdaterError`` so callers can catch the
package's entire error surface with a single ``except`` clause.

The three structured errors (``ValidationError``, ``SecurityError`` and
``ExtractionError``) carry the full paths involved as attributes, but
render only the final path component in their message so that logs and
terminal output never disclose the layout of the filesystem.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "ArchiveNotRegularError",
    "ExtractionCancelledError",
    "ExtractionError",
    "FileCountExceededError",
    "FileSizeExceededError",
    "GoupdaterError",
    "InvalidPathError",
    "MalformedArchiveError",
    "SecurityError",
    "TotalSizeExceededError",
    "ValidationError",
    "find_cause",
    "sanitize_path",
)

from typing import TypeVar

_E = TypeVar("_E", bound=BaseException)


class GoupdaterError(Exception):
    """Base exception for all goupdater failures."""


class InvalidPathError(GoupdaterError):
    """An archive path or link target is not acceptable."""


class ArchiveNotRegularError(GoupdaterError):
    """The archive path exists but is not a regular file."""


class FileCountExceededError(GoupdaterError):
    """The archive contains more entries than ``max_files``."""


class FileSizeExceededError(GoupdaterError):
    """A single entry's declared size exceeds ``max_file_size``."""


class TotalSizeExceededError(GoupdaterError):
    """Cumulative declared size exceeds ``max_total_size``."""


class MalformedArchiveError(GoupdaterError):
    """The archive is structurally invalid.

    Raised for streams that are not gzip, unreadable tar headers and
    member data that ends before its declared size.
    """


class ExtractionCancelledError(GoupdaterError):
    """Extraction was stopped by the caller's cancellation flag."""


def sanitize_path(path: str | None) -> str:
    """Return only the last component of *path* for display.

    Both ``/`` and ``\\`` are treated as separators regardless of the
    host platform.  An empty path renders as ``"unknown"``.
    """
    if not path:
        return "unknown"
    index = max(path.rfind("/"), path.rfind("\\"))
    if index >= 0:
        return path[index + 1 :]
    return path


class _CausedError(GoupdaterError):
    """Mixin storing an explicit ``cause`` and chaining it as ``__cause__``."""

    def __init__(self, *args: object, cause: BaseException | None = None) -> None:
        super().__init__(*args)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ValidationError(_CausedError):
    """A pre-flight check on the archive file failed."""

    def __init__(
        self,
        path: str,
        criteria: str,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(path, criteria, cause=cause)
        self.path = path
        self.criteria = criteria

    def __str__(self) -> str:
        return (
            f"validation error: file={sanitize_path(self.path)} "
            f"criteria={self.criteria}"
        )


class SecurityError(_CausedError):
    """A containment, traversal or link-chain rule rejected a path.

    ``validation`` is a short, stable tag naming the rule that fired,
    e.g. ``"absolute path prevention"`` or
    ``"symlink chain destination check"``.
    """

    def __init__(
        self,
        attempted_path: str,
        validation: str,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(attempted_path, validation, cause=cause)
        self.attempted_path = attempted_path
        self.validation = validation

    def __str__(self) -> str:
        return (
            f"security error: path={sanitize_path(self.attempted_path)} "
            f"validation={self.validation}"
        )


class ExtractionError(_CausedError):
    """Top-level failure raised by ``validate()`` and ``extract()``.

    ``context`` names the phase that failed (``"reading tar header"``,
    ``"extracting file"``, ...).  The underlying ``ValidationError``,
    ``SecurityError`` or I/O error is available as ``cause``.
    """

    def __init__(
        self,
        archive_path: str,
        destination: str,
        context: str,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(archive_path, destination, context, cause=cause)
        self.archive_path = archive_path
        self.destination = destination
        self.context = context

    def __str__(self) -> str:
        return (
            f"extraction failed: archive={sanitize_path(self.archive_path)} "
            f"dest={sanitize_path(self.destination)} context={self.context}"
        )


def find_cause(exc: BaseException | None, kind: type[_E]) -> _E | None:
    """Return the first exception of type *kind* in *exc*'s cause chain.

    *exc* itself is checked first.  The chain is followed through
    ``__cause__`` only; implicit ``__context__`` links are ignored.
    """
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, kind):
            return exc
        seen.add(id(exc))
        exc = exc.__cause__
    return None
