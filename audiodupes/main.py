"""Command-line interface for audiodupes.

Commands:
    scan      - Find groups of similar audio files in a directory
    exclude   - Mark files as never belonging to the same group
    compare   - Fingerprint two files and print their similarity
"""

from __future__ import annotations

import argparse
import itertools
import logging
import os
import sqlite3
import sys
import tempfile
from pathlib import Path
from typing import Any

from audiodupes.core.config import AppConfig, build_config, load_config
from audiodupes.core.database import FingerprintDB
from audiodupes.core.errors import AudioDupesError, ConfigurationError
from audiodupes.core.scanner import DuplicateScanner
from audiodupes.core.similarity import best_alignment, compare_fingerprints
from audiodupes.utils.fpcalc import Fpcalc
from audiodupes.utils.logger import setup_logging
from audiodupes.utils.report import format_groups

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _add_fpcalc_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("fpcalc options")
    group.add_argument("--fpcalc-length", type=float, help="Max audio duration to process (fpcalc -length)")
    group.add_argument("--fpcalc-chunk", type=float, help="Audio chunk duration (fpcalc -chunk)")
    group.add_argument("--fpcalc-algorithm", type=int, help="Fingerprint algorithm (fpcalc -algorithm)")
    group.add_argument(
        "--fpcalc-overlap",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Overlap audio chunks (fpcalc -overlap)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audiodupes",
        description="Find near-duplicate audio files in a directory tree.",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--db", type=Path, help="SQLite database for storing fingerprints")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Find groups of similar files")
    scan.add_argument("directory", type=Path, help="Directory containing audio files")
    _add_fpcalc_args(scan)
    scan.add_argument("--file-regexp", help="Case-insensitive regular expression for audio files")
    scan.add_argument("--lookup-threshold", type=float, help="Match threshold for lookup table in (0.0, 1.0]")
    scan.add_argument("--lookup-bits", type=int, help="Fingerprint bits used by the lookup table (max 32)")
    scan.add_argument("--match-threshold", type=float, help="Match threshold for bitwise comparisons in (0.0, 1.0]")
    scan.add_argument(
        "--match-min-length",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use the shorter fingerprint's length when comparing",
    )
    scan.add_argument("--log-sec", type=float, help="Progress logging interval in seconds (0 to disable)")
    scan.add_argument(
        "--skip-bad-files",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Skip files that can't be fingerprinted",
    )
    scan.add_argument(
        "--skip-new-files",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Skip files that aren't already in the database",
    )
    scan.add_argument(
        "--print-file-info",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Print file sizes and durations",
    )
    scan.set_defaults(func=cmd_scan)

    exclude = subparsers.add_parser("exclude", help="Never group the given files together")
    exclude.add_argument("paths", nargs="+", help="Two or more paths relative to the scanned directory")
    _add_fpcalc_args(exclude)
    exclude.set_defaults(func=cmd_exclude)

    compare = subparsers.add_parser("compare", help="Compare two audio files")
    compare.add_argument("files", nargs=2, type=Path)
    _add_fpcalc_args(compare)
    compare.set_defaults(func=cmd_compare)

    return parser


def _set(section: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        section[key] = value


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return config with values from command-line flags applied.

    Raises:
        ConfigurationError: If a flag value is invalid
    """
    data = config.model_dump()
    _set(data, "database", args.db)
    _set(data["logging"], "level", args.log_level)

    fpcalc = data["fpcalc"]
    _set(fpcalc, "length", getattr(args, "fpcalc_length", None))
    _set(fpcalc, "chunk", getattr(args, "fpcalc_chunk", None))
    _set(fpcalc, "algorithm", getattr(args, "fpcalc_algorithm", None))
    _set(fpcalc, "overlap", getattr(args, "fpcalc_overlap", None))

    scan = data["scan"]
    _set(scan, "file_pattern", getattr(args, "file_regexp", None))
    _set(scan, "lookup_threshold", getattr(args, "lookup_threshold", None))
    _set(scan, "lookup_bits", getattr(args, "lookup_bits", None))
    _set(scan, "match_threshold", getattr(args, "match_threshold", None))
    _set(scan, "match_min_length", getattr(args, "match_min_length", None))
    _set(scan, "log_interval_sec", getattr(args, "log_sec", None))
    _set(scan, "skip_bad_files", getattr(args, "skip_bad_files", None))
    _set(scan, "skip_new_files", getattr(args, "skip_new_files", None))

    return build_config(data)


def cmd_scan(args: argparse.Namespace, config: AppConfig) -> int:
    """Scan a directory and print groups of similar files."""
    directory: Path = args.directory
    if not directory.is_dir():
        print(f"Error: {directory} is not a directory", file=sys.stderr)
        return EXIT_USAGE

    generator = Fpcalc()
    if not config.scan.skip_new_files and not generator.available():
        print("Error: fpcalc not in path (install libchromaprint-tools?)", file=sys.stderr)
        return EXIT_FAILURE

    db_path = config.database
    temp_path: str | None = None
    if db_path is None:
        fd, temp_path = tempfile.mkstemp(prefix="audiodupes.db.")
        os.close(fd)
        db_path = Path(temp_path)

    try:
        with FingerprintDB.open(db_path, config.fpcalc) as db:
            scanner = DuplicateScanner(db, config.scan, config.fpcalc, generator)
            groups = scanner.scan(directory)
            logger.debug(f"[Main] Scan stats: {scanner.stats}")
    finally:
        if temp_path is not None:
            os.remove(temp_path)

    output = format_groups(groups, directory, file_info=args.print_file_info)
    if output:
        print(output)
    return EXIT_OK


def cmd_exclude(args: argparse.Namespace, config: AppConfig) -> int:
    """Mark every pair among the given files as excluded."""
    if len(args.paths) < 2:
        print("Error: exclude needs at least two paths", file=sys.stderr)
        return EXIT_USAGE
    if config.database is None:
        print("Error: --db is required to exclude files", file=sys.stderr)
        return EXIT_USAGE

    with FingerprintDB.open(config.database, config.fpcalc) as db:
        for a, b in itertools.combinations(args.paths, 2):
            db.save_excluded_pair(a, b)
            logger.info(f"[Main] Excluded {a}, {b}")
    return EXIT_OK


def cmd_compare(args: argparse.Namespace, config: AppConfig) -> int:
    """Fingerprint two files and print how similar they are."""
    generator = Fpcalc()
    if not generator.available():
        print("Error: fpcalc not in path (install libchromaprint-tools?)", file=sys.stderr)
        return EXIT_FAILURE

    a_path, b_path = args.files
    a = generator.generate(a_path, config.fpcalc)
    b = generator.generate(b_path, config.fpcalc)

    alignment = best_alignment(a.fingerprint, b.fingerprint)
    print(f"{a_path}: {len(a.fingerprint)} values, {a.duration:.1f} s")
    print(f"{b_path}: {len(b.fingerprint)} values, {b.duration:.1f} s")
    print(f"Score (longer length):  {compare_fingerprints(a.fingerprint, b.fingerprint):.3f}")
    print(f"Score (shorter length): {compare_fingerprints(a.fingerprint, b.fingerprint, True):.3f}")
    print(f"Offsets: {alignment.a_offset}, {alignment.b_offset}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), args)
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(config.logging)

    try:
        return args.func(args, config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (AudioDupesError, OSError, sqlite3.Error) as e:
        print(f"Failed {args.command}: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
