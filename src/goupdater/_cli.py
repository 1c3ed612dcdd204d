"""Command line interface: ``goupdater validate|extract|version``."""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "build_parser",
    "configure_logging",
    "main",
)

import argparse
import logging
import os
import sys
from collections.abc import Sequence

from goupdater._config import ExtractionLimits
from goupdater._exceptions import GoupdaterError
from goupdater._extractor import Extractor
from goupdater._version import extract_version

EXIT_OK = 0
EXIT_FAILURE = 1

_LEVEL_MAP = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command line use.

    Precedence: explicit *level*, then ``GOUPDATER_LOG_LEVEL``, then
    ``WARNING``.
    """
    if level is None:
        level = os.environ.get("GOUPDATER_LOG_LEVEL", "WARNING")
    logging.basicConfig(
        level=_LEVEL_MAP.get(level.upper(), logging.WARNING),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {raw!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {raw!r}")
    return value


def _cmd_validate(args: argparse.Namespace) -> int:
    Extractor().validate(args.archive, args.dest)
    print(f"{os.path.basename(args.archive)}: ok")
    return EXIT_OK


def _cmd_extract(args: argparse.Namespace) -> int:
    overrides = {
        name: getattr(args, name)
        for name in ("max_files", "max_file_size", "max_total_size", "buffer_size")
        if getattr(args, name) is not None
    }
    extractor = Extractor(limits=ExtractionLimits(**overrides))
    session = extractor.extract(args.archive, args.dest)
    print(
        f"extracted {session.files_seen} entries "
        f"({session.bytes_seen} bytes) from {os.path.basename(args.archive)}"
    )
    return EXIT_OK


def _cmd_version(args: argparse.Namespace) -> int:
    print(extract_version(args.filename))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goupdater",
        description="Validate and securely extract Go toolchain archives.",
    )
    parser.add_argument(
        "--log-level",
        choices=sorted(_LEVEL_MAP),
        type=str.upper,
        default=None,
        help="Logging level (default: $GOUPDATER_LOG_LEVEL or WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_validate = subparsers.add_parser(
        "validate", help="Check that the archive exists and is a regular file"
    )
    p_validate.add_argument("archive", help="Path to the .tar.gz archive")
    p_validate.add_argument("dest", help="Destination directory")
    p_validate.set_defaults(func=_cmd_validate)

    p_extract = subparsers.add_parser("extract", help="Extract the archive")
    p_extract.add_argument("archive", help="Path to the .tar.gz archive")
    p_extract.add_argument("dest", help="Destination directory")
    p_extract.add_argument("--max-files", type=_positive_int, default=None)
    p_extract.add_argument("--max-file-size", type=_positive_int, default=None)
    p_extract.add_argument("--max-total-size", type=_positive_int, default=None)
    p_extract.add_argument("--buffer-size", type=_positive_int, default=None)
    p_extract.set_defaults(func=_cmd_extract)

    p_version = subparsers.add_parser(
        "version", help="Print the Go version encoded in an archive filename"
    )
    p_version.add_argument("filename", help="Archive filename or path")
    p_version.set_defaults(func=_cmd_version)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.func(args)
    except GoupdaterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
