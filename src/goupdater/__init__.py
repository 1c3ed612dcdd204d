"""goupdater: secure extraction of Go toolchain archives.

Zero dependencies.  Python 3.10+.
"""

from __future__ import annotations

__title__ = "goupdater"
__version__ = "0.1"
__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

from goupdater._codec import ArchiveEntry, DefaultProcessor, EntryType
from goupdater._config import ExtractionLimits
from goupdater._events import SecurityEvent
from goupdater._exceptions import (
    ArchiveNotRegularError,
    ExtractionCancelledError,
    ExtractionError,
    FileCountExceededError,
    FileSizeExceededError,
    GoupdaterError,
    InvalidPathError,
    MalformedArchiveError,
    SecurityError,
    TotalSizeExceededError,
    ValidationError,
    find_cause,
)
from goupdater._fs import FileSystem, OSFileSystem
from goupdater._version import extract_version

# Deferred imports: _extractor pulls in the validator and the codec, so
# it is only loaded once one of its names is first requested.


def __getattr__(name: str) -> object:
    if name in ("Extractor", "ExtractionSession", "extract", "validate"):
        from goupdater import _extractor

        for attr in ("Extractor", "ExtractionSession", "extract", "validate"):
            globals()[attr] = getattr(_extractor, attr)
        return globals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Core
    "Extractor",
    "ExtractionSession",
    "extract",
    "validate",
    "extract_version",
    # Configuration & abstractions
    "ExtractionLimits",
    "FileSystem",
    "OSFileSystem",
    "DefaultProcessor",
    "ArchiveEntry",
    "EntryType",
    # Exceptions
    "GoupdaterError",
    "ExtractionError",
    "SecurityError",
    "ValidationError",
    "InvalidPathError",
    "ArchiveNotRegularError",
    "FileCountExceededError",
    "FileSizeExceededError",
    "TotalSizeExceededError",
    "MalformedArchiveError",
    "ExtractionCancelledError",
    "find_cause",
    # Events
    "SecurityEvent",
]
