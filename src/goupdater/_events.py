"""Security event dataclass for goupdater."""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = ("SecurityEvent",)

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """Immutable record of a security violation detected during extraction.

    Deliberately excludes filenames, paths, and entry names so that
    forwarding an event to a third-party service does not leak
    confidential filesystem information.
    """

    event_type: str
    """Type identifier, e.g. ``"symlink_violation"``, ``"security_violation"``."""

    validation: str
    """The ``SecurityError.validation`` tag of the rule that fired."""

    archive_hash: str
    """First 16 hex characters of the SHA-256 of the archive."""

    timestamp: float
    """``time.time()`` at the moment of detection."""
