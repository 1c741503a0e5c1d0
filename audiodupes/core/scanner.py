"""Scan a directory tree for groups of similar audio files.

Each file is handled in turn:

1. Its fingerprint is loaded from the database, or computed with fpcalc and saved.
2. The lookup table is queried for files sharing enough truncated values.
3. Each candidate that isn't an excluded pair is compared bit-by-bit, and an
   edge is added to the similarity graph if the score is high enough.
4. The file is added to the lookup table. This happens after the query so a
   file is never matched against itself.

Connected components of the graph are the returned groups.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from audiodupes.core.config import FpcalcConfig, ScanConfig
from audiodupes.core.database import FileInfo, FingerprintDB
from audiodupes.core.errors import GeneratorError, ScanError, StoreIntegrityError
from audiodupes.core.grouping import components
from audiodupes.core.lookup import LookupTable
from audiodupes.core.similarity import compare_fingerprints
from audiodupes.utils.files import find_audio_files
from audiodupes.utils.fpcalc import FingerprintGenerator, Fpcalc

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    """Counters for a single scan."""

    scanned: int = 0  # files looked up in the lookup table
    fingerprinted: int = 0  # files newly fingerprinted and saved
    skipped: int = 0  # files that couldn't be fingerprinted or weren't cached
    comparisons: int = 0  # exact fingerprint comparisons performed
    groups: int = 0


class DuplicateScanner:
    """Finds groups of similar audio files using a FingerprintDB as a cache."""

    def __init__(
        self,
        db: FingerprintDB,
        config: ScanConfig | None = None,
        settings: FpcalcConfig | None = None,
        generator: FingerprintGenerator | None = None,
        progress_callback: Callable[[int], None] | None = None,
    ):
        """Initialize scanner.

        Args:
            db: Open fingerprint database (must match settings)
            config: Scan thresholds and skip policies
            settings: fpcalc settings used for new fingerprints
            generator: Fingerprint generator (runs fpcalc if None)
            progress_callback: Optional callback(files_scanned), called per file
        """
        self.db = db
        self.config = config or ScanConfig()
        self.settings = settings or FpcalcConfig()
        self.generator = generator or Fpcalc()
        self.progress_callback = progress_callback
        self.stats = ScanStats()

    def scan(self, directory: Path, files: Iterable[Path] | None = None) -> list[list[FileInfo]]:
        """Scan files under directory and return groups of similar files.

        Args:
            directory: Root directory; stored paths are relative to it
            files: Files to scan in order (all audio files under directory if None)

        Returns:
            Groups of files, each sorted by path, ordered by their first path

        Raises:
            ValueError: If directory doesn't exist
            ScanError: If a file can't be fingerprinted and bad files aren't skipped
            StoreIntegrityError: If the database is inconsistent
        """
        if not directory.is_dir():
            raise ValueError(f"{directory} is not a directory")
        # Walk the real directory so relative paths don't depend on symlinks.
        root = directory.resolve()
        pattern = self.config.compiled_pattern()
        if files is None:
            files = find_audio_files(root, pattern)

        self.stats = ScanStats()
        lookup = LookupTable(self.config.lookup_bits)
        edges: dict[int, list[int]] = defaultdict(list)
        seen: set[int] = set()
        last_log = time.monotonic()

        for path in files:
            path = Path(path)
            if not path.is_absolute():
                path = root / path
            if not pattern.search(path.name):
                continue
            rel = self._relative_path(path, root, directory)

            info = self._get_info(path, rel)
            if info is None or info.id in seen:
                continue
            seen.add(info.id)

            thresh = int(len(info.fingerprint) * self.config.lookup_threshold)
            for other_id in sorted(lookup.find(info.fingerprint, thresh)):
                other = self._get_by_id(other_id)
                if self.db.is_excluded_pair(info.path, other.path):
                    logger.debug(f"[Scanner] Not comparing excluded pair {info.path}, {other.path}")
                    continue
                self.stats.comparisons += 1
                score = compare_fingerprints(
                    info.fingerprint, other.fingerprint, self.config.match_min_length
                )
                if score >= self.config.match_threshold:
                    logger.debug(f"[Scanner] {info.path} matches {other.path} ({score:.3f})")
                    edges[info.id].append(other.id)
                    edges[other.id].append(info.id)

            lookup.add(info.id, info.fingerprint)

            self.stats.scanned += 1
            if self.progress_callback:
                self.progress_callback(self.stats.scanned)
            interval = self.config.log_interval_sec
            if interval > 0 and time.monotonic() - last_log >= interval:
                logger.info(f"[Scanner] Scanned {self.stats.scanned} files")
                last_log = time.monotonic()

        if self.config.log_interval_sec > 0:
            logger.info(f"[Scanner] Finished scanning {self.stats.scanned} files")

        groups = []
        for comp in components(edges):
            group = sorted((self._get_by_id(file_id) for file_id in comp), key=lambda i: i.path)
            groups.append(group)
        groups.sort(key=lambda g: g[0].path)
        self.stats.groups = len(groups)
        return groups

    @staticmethod
    def _relative_path(path: Path, root: Path, directory: Path) -> str:
        """Return path relative to the scanned directory, using forward slashes."""
        for base in (root, directory.absolute()):
            try:
                return path.relative_to(base).as_posix()
            except ValueError:
                continue
        raise ScanError(str(path), ValueError(f"not under {directory}"))

    def _get_info(self, path: Path, rel: str) -> FileInfo | None:
        """Return the cached info for rel, fingerprinting path if needed.

        None is returned if the file should be skipped.
        """
        info = self.db.get_by_path(rel)
        if info is not None:
            return info
        if self.config.skip_new_files:
            self.stats.skipped += 1
            return None

        try:
            result = self.generator.generate(path, self.settings)
        except GeneratorError as e:
            if self.config.skip_bad_files:
                logger.warning(f"[Scanner] Skipping {path}: {e}")
                self.stats.skipped += 1
                return None
            raise ScanError(str(path), e) from e

        info = FileInfo(
            id=0,
            path=rel,
            size=path.stat().st_size,
            duration=result.duration,
            fingerprint=result.fingerprint,
        )
        info.id = self.db.save(info)
        self.stats.fingerprinted += 1
        return info

    def _get_by_id(self, file_id: int) -> FileInfo:
        info = self.db.get_by_id(file_id)
        if info is None:
            raise StoreIntegrityError(f"File {file_id} not in database")
        return info
