"""Parse the Go release version out of a distribution archive filename."""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = ("extract_version",)

import logging
import re

log = logging.getLogger("goupdater.archive")

_ARCHIVE_SUFFIX = ".tar.gz"
_REQUIRED_VERSION_PARTS = 3

# A semver numeric identifier: no leading zeros.
_NUMERIC_RE = re.compile(r"^(0|[1-9][0-9]*)$")


def _basename(path: str) -> str:
    trimmed = path.rstrip("/\\")
    if not trimmed:
        return path
    index = max(trimmed.rfind("/"), trimmed.rfind("\\"))
    return trimmed[index + 1 :]


def extract_version(filename: str) -> str:
    """Return the ``go<major>.<minor>.<patch>`` version of an archive name.

    Go archive names follow
    ``go<major>.<minor>.<patch><pre-release>.<os>-<arch>.tar.gz``.  The
    directory part and the ``.tar.gz`` suffix are dropped, everything from
    the first ``-`` on is discarded and the first three dot-separated
    components are kept.

    If the name does not parse, the base filename is returned unchanged::

        >>> extract_version("go1.21.0.linux-amd64.tar.gz")
        'go1.21.0'
        >>> extract_version("/a/b/go1.20.0.darwin-amd64.tar.gz")
        'go1.20.0'
        >>> extract_version("invalid-filename")
        'invalid-filename'
    """
    if not filename:
        return ""

    base = _basename(filename)
    name = base
    if len(name) > len(_ARCHIVE_SUFFIX) and name.endswith(_ARCHIVE_SUFFIX):
        name = name[: -len(_ARCHIVE_SUFFIX)]

    if not name.startswith("go"):
        log.debug("No go prefix in %r", base)
        return base

    rest = name[2:]
    if not rest or not rest[0].isdigit():
        log.debug("No version digits after go prefix in %r", base)
        return base

    version_part = rest.split("-")[0]
    parts = version_part.split(".")
    if len(parts) < _REQUIRED_VERSION_PARTS:
        log.debug("Insufficient version parts in %r", base)
        return base

    parts = parts[:_REQUIRED_VERSION_PARTS]
    if not all(_NUMERIC_RE.match(part) for part in parts):
        log.debug("Invalid semantic version %r in %r", ".".join(parts), base)
        return base

    return "go" + ".".join(parts)
