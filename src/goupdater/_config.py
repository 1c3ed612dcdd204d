"""Quota configuration for the Extractor.

Defaults are sized for official Go distributions (about 15 000 entries,
roughly 200 MiB unpacked, largest single file about 21 MiB) and can be
overridden through ``GOUPDATER_*`` environment variables.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = ("ExtractionLimits",)

import os
from dataclasses import dataclass, fields

# ---- environment-variable configuration helpers ----------------------------
# Each helper reads the relevant GOUPDATER_* variable and returns its typed
# value, falling back to *fallback* on absence or parse failure.


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


@dataclass(frozen=True, slots=True)
class ExtractionLimits:
    """Ceilings enforced while extracting a single archive.

    :param max_files: Maximum number of entries (of any type).
    :param max_file_size: Maximum declared size of one regular file.
    :param max_total_size: Maximum cumulative declared size of all
        regular files.
    :param buffer_size: Chunk size used when copying file data.
    :raises ValueError: If any value is not a positive integer.
    """

    max_files: int = _env_int("GOUPDATER_MAX_FILES", 20_000)
    max_file_size: int = _env_int("GOUPDATER_MAX_FILE_SIZE", 50 * 1024**2)
    max_total_size: int = _env_int("GOUPDATER_MAX_TOTAL_SIZE", 500 * 1024**2)
    buffer_size: int = _env_int("GOUPDATER_BUFFER_SIZE", 32 * 1024**2)

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(
                    f"ExtractionLimits.{field.name} must be a positive integer, "
                    f"got {value!r}"
                )
