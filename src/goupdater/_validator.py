"""Path Validator: classify entry names and link targets as safe or unsafe.

Every check raises ``SecurityError`` naming the rule that fired.  Checks
short-circuit on the first failure and never fall back to a "safer"
interpretation of the input.

Lexical checks compare against the canonical destination
(``dest_dir_clean``).  Checks on symlink-resolved paths compare against
``dest_dir_real``, the destination with its own symlinks resolved, so a
destination living under a symlinked directory (``/tmp`` on macOS, for
instance) does not trip them.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "SENSITIVE_PATHS",
    "is_within",
    "resolve_and_validate_path",
    "validate_containment",
    "validate_header_name",
    "validate_linkname",
)

import logging
import os
import posixpath
import re

from goupdater._exceptions import InvalidPathError, SecurityError
from goupdater._fs import FileSystem

log = logging.getLogger("goupdater.archive")

# System directories a link may never point into, unless the destination
# itself lives inside one of them.
SENSITIVE_PATHS = (
    "/etc",
    "/usr",
    "/bin",
    "/sbin",
    "/dev",
    "/proc",
    "/sys",
    "/root",
    "/home",
)

_DRIVE_RE = re.compile(r"^[A-Za-z]:[/\\]")


def is_within(path: str, root: str) -> bool:
    """Return True if *path* equals *root* or lies below it.

    Pure string comparison on already-normalised paths; matches whole
    path segments only, so ``/homework`` is not within ``/home``.
    """
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


def _check_raw(path: str) -> None:
    """Absolute, traversal, backslash and NUL checks, in that order."""
    if path.startswith("/") or os.path.isabs(path) or _DRIVE_RE.match(path):
        raise SecurityError(path, "absolute path prevention", InvalidPathError())

    if ".." in path.replace("\\", "/").split("/"):
        raise SecurityError(
            path, "parent directory reference prevention", InvalidPathError()
        )

    if "\\" in path:
        raise SecurityError(path, "backslash prevention", InvalidPathError())

    if "\x00" in path:
        raise SecurityError(path, "null byte prevention", InvalidPathError())


def validate_header_name(name: str) -> None:
    """Validate a raw entry name from a tar header.

    Rejects, in this order: absolute paths (including drive-letter
    forms), any ``..`` segment, backslashes, NUL bytes.
    """
    _check_raw(name)


def validate_containment(target: str, dest_dir_clean: str) -> None:
    """Ensure *target* is *dest_dir_clean* or lies inside it.

    Two independent checks: the relative path from the destination must
    not climb out or be absolute, and the plain string prefix must
    agree.
    """
    try:
        rel = os.path.relpath(target, dest_dir_clean)
    except ValueError as exc:
        # Different drives on Windows.
        raise SecurityError(target, "path relativity check", exc) from exc

    if rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
        raise SecurityError(
            target, "directory traversal prevention", InvalidPathError()
        )

    if not is_within(target, dest_dir_clean):
        raise SecurityError(target, "destination prefix check", InvalidPathError())


def _deepest_existing(path: str, stop: str, fs: FileSystem) -> str | None:
    """Walk up from *path* to the first component that exists on disk.

    Returns ``None`` when nothing below *stop* exists.
    """
    current = path
    while True:
        try:
            fs.lstat(current)
        except OSError:
            if current == stop:
                return None
            parent = os.path.dirname(current)
            if parent == current:
                return None
            current = parent
        else:
            return current


def _resolve_into(
    path: str,
    dest_dir_clean: str,
    dest_dir_real: str,
    fs: FileSystem,
    validation: str,
) -> None:
    """Resolve symlinks in the existing part of *path* and check containment."""
    existing = _deepest_existing(path, dest_dir_clean, fs)
    if existing is None:
        return

    try:
        resolved = os.path.normpath(fs.eval_symlinks(existing))
    except OSError as exc:
        raise SecurityError(existing, "symlink chain resolution", exc) from exc

    if not is_within(resolved, dest_dir_real):
        log.debug("Resolved %s to %s outside destination", existing, resolved)
        raise SecurityError(resolved, validation, InvalidPathError())


def resolve_and_validate_path(
    target: str,
    dest_dir_clean: str,
    fs: FileSystem,
    *,
    dest_dir_real: str | None = None,
) -> None:
    """Re-check containment of *target* after resolving on-disk symlinks.

    A previous entry may have created a symlink that *target* now
    traverses.  The deepest existing component of *target* is resolved
    with ``fs.eval_symlinks``; if nothing below the destination exists
    yet there is nothing to resolve and the check passes.
    """
    _resolve_into(
        target,
        dest_dir_clean,
        dest_dir_real or dest_dir_clean,
        fs,
        "resolved path destination check",
    )


def _check_sensitive(resolved: str, linkname: str, dest_dir_clean: str) -> None:
    for sensitive in SENSITIVE_PATHS:
        if is_within(resolved, sensitive) and not is_within(dest_dir_clean, sensitive):
            raise SecurityError(
                linkname, "sensitive system path prevention", InvalidPathError()
            )


def validate_linkname(
    linkname: str,
    base_dir: str,
    dest_dir_clean: str,
    fs: FileSystem,
    *,
    dest_dir_real: str | None = None,
) -> str:
    """Validate the target of a symlink or hardlink entry.

    :param linkname: Raw link target from the archive.
    :param base_dir: Directory *linkname* is relative to.
    :param dest_dir_clean: Canonical extraction root.
    :param fs: Filesystem used to inspect links already on disk.
    :param dest_dir_real: Symlink-resolved extraction root; defaults to
        *dest_dir_clean*.
    :returns: The normalised absolute path *linkname* points at.
    :raises SecurityError: If any rule rejects the target.

    The final step guards against two-hop escapes: an earlier entry may
    have left a symlink inside the destination that leads outside, and
    this link would point through it.  Whatever already exists of the
    resolved target is therefore resolved again and re-checked.
    """
    _check_raw(linkname)

    resolved = os.path.normpath(os.path.join(base_dir, linkname))

    if not is_within(resolved, dest_dir_clean):
        raise SecurityError(linkname, "linkname destination check", InvalidPathError())

    rel = os.path.relpath(resolved, dest_dir_clean)
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        raise SecurityError(linkname, "relative path validation", InvalidPathError())

    # The deny-list is expressed in POSIX form.
    if os.sep == "/":
        _check_sensitive(posixpath.normpath(resolved), linkname, dest_dir_clean)

    try:
        _resolve_into(
            resolved,
            dest_dir_clean,
            dest_dir_real or dest_dir_clean,
            fs,
            "symlink chain destination check",
        )
    except SecurityError as exc:
        raise SecurityError(linkname, "symlink chain validation", exc) from exc

    return resolved
