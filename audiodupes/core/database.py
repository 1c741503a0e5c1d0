"""SQLite storage for previously-computed audio fingerprints.

The database doubles as a cache across runs: fingerprints are written as soon
as they're computed, so an interrupted scan loses nothing that was already
fingerprinted. All fingerprints in one database must have been produced with
the same fpcalc settings, which are recorded on creation and checked on
every open.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

import numpy as np

from audiodupes.core.config import FpcalcConfig, SettingsDescriptor
from audiodupes.core.errors import (
    ConfigurationError,
    DuplicatePathError,
    RecordNotFoundError,
    StoreClosedError,
    StoreIntegrityError,
)

logger = logging.getLogger(__name__)

# Fingerprint blobs are little-endian 32-bit words.
FINGERPRINT_DTYPE = np.dtype("<u4")

MAX_FILE_ID = 2**31 - 1
"""File IDs must fit in a signed 32-bit integer."""


@dataclass
class FileInfo:
    """Information about a file stored in the database.

    Attributes:
        id: Unique ID assigned by the database (0 until saved)
        path: Path relative to the scanned directory
        size: File size in bytes
        duration: Audio duration in seconds as reported by fpcalc
        fingerprint: Ordered 32-bit fingerprint codes
    """

    id: int
    path: str
    size: int
    duration: float
    fingerprint: list[int] = field(default_factory=list, repr=False)


def encode_fingerprint(fingerprint: list[int]) -> bytes:
    """Serialize fingerprint codes to a blob.

    Raises:
        StoreIntegrityError: If a code doesn't fit in an unsigned 32-bit word
    """
    for v in fingerprint:
        if not 0 <= v <= 0xFFFFFFFF:
            raise StoreIntegrityError(f"Fingerprint value {v} doesn't fit in 32 bits")
    return np.asarray(fingerprint, dtype=FINGERPRINT_DTYPE).tobytes()


def decode_fingerprint(blob: bytes) -> list[int]:
    """Deserialize a blob produced by encode_fingerprint().

    Raises:
        StoreIntegrityError: If the blob length isn't a multiple of 4
    """
    if len(blob) % FINGERPRINT_DTYPE.itemsize != 0:
        raise StoreIntegrityError(f"Invalid fingerprint size {len(blob)}")
    return [int(v) for v in np.frombuffer(blob, dtype=FINGERPRINT_DTYPE)]


class FingerprintDB:
    """Database of fingerprints, file sizes, durations and excluded file pairs.

    Usage:
        with FingerprintDB.open(path, fpcalc_config) as db:
            info = db.get_by_path("artist/album/01-title.mp3")
    """

    def __init__(self, db_path: Path | str):
        """Initialize database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.conn: sqlite3.Connection | None = None

    @classmethod
    def open(cls, db_path: Path | str, settings: FpcalcConfig | SettingsDescriptor) -> FingerprintDB:
        """Open or create a database for fingerprints computed with settings.

        Raises:
            ConfigurationError: If the database was created with different settings
            StoreIntegrityError: If the file isn't a usable SQLite database
        """
        db = cls(db_path)
        try:
            db.connect()
            db.initialize_schema(settings)
        except sqlite3.DatabaseError as e:
            db.close()
            raise StoreIntegrityError(f"Failed opening database {db.db_path}: {e}") from e
        except BaseException:
            db.close()
            raise
        return db

    def connect(self) -> None:
        """Connect to database, creating its directory if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))

    def close(self) -> None:
        """Close the connection. Later calls fail with StoreClosedError."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> FingerprintDB:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def _conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise StoreClosedError(f"Database {self.db_path} is not open")
        return self.conn

    # ========== Schema Management ==========

    def initialize_schema(self, settings: FpcalcConfig | SettingsDescriptor) -> None:
        """Create tables and record or verify the fingerprint settings.

        Raises:
            ConfigurationError: If stored settings differ from settings
        """
        if isinstance(settings, FpcalcConfig):
            settings = settings.descriptor()

        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS Settings (
                Version INTEGER NOT NULL,
                Descriptor TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS Files (
                Path TEXT PRIMARY KEY NOT NULL,
                Size INTEGER NOT NULL,
                Duration REAL NOT NULL,
                Fingerprint BLOB NOT NULL
            );

            CREATE TABLE IF NOT EXISTS ExcludedPairs (
                PathA TEXT NOT NULL,
                PathB TEXT NOT NULL,
                PRIMARY KEY (PathA, PathB)
            );
            """
        )

        row = self._conn.execute("SELECT Version, Descriptor FROM Settings").fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO Settings (Version, Descriptor) VALUES (?, ?)",
                (settings.version, settings.to_json()),
            )
            self._conn.commit()
            logger.debug(f"[FingerprintDB] Created {self.db_path} with settings {settings}")
            return

        stored = SettingsDescriptor.from_row(row[0], row[1])
        if stored != settings:
            raise ConfigurationError(
                f"Database settings ({stored}, v{stored.version}) don't match "
                f"current settings ({settings}, v{settings.version})"
            )

    # ========== Files ==========

    def get_by_path(self, path: str) -> FileInfo | None:
        """Return the file with the given relative path, or None if it isn't cached."""
        row = self._conn.execute(
            "SELECT ROWID, Path, Size, Duration, Fingerprint FROM Files WHERE Path = ?",
            (path,),
        ).fetchone()
        return self._row_to_info(row)

    def get_by_id(self, file_id: int) -> FileInfo | None:
        """Return the file with the given ID, or None if there isn't one."""
        row = self._conn.execute(
            "SELECT ROWID, Path, Size, Duration, Fingerprint FROM Files WHERE ROWID = ?",
            (file_id,),
        ).fetchone()
        return self._row_to_info(row)

    @staticmethod
    def _row_to_info(row: tuple | None) -> FileInfo | None:
        if row is None:
            return None
        file_id, path, size, duration, blob = row
        return FileInfo(
            id=int(file_id),
            path=path,
            size=int(size),
            duration=float(duration),
            fingerprint=decode_fingerprint(bytes(blob)),
        )

    def save(self, info: FileInfo) -> int:
        """Save a new file and return its ID. info.id is ignored.

        Raises:
            DuplicatePathError: If the path is already present
            StoreIntegrityError: If the fingerprint or assigned ID is out of range
        """
        blob = encode_fingerprint(info.fingerprint)
        try:
            cursor = self._conn.execute(
                "INSERT INTO Files (Path, Size, Duration, Fingerprint) VALUES (?, ?, ?, ?)",
                (info.path, info.size, info.duration, blob),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicatePathError(f"{info.path} is already in the database") from e

        file_id = cursor.lastrowid
        if file_id is None or file_id <= 0 or file_id > MAX_FILE_ID:
            self._conn.rollback()
            raise StoreIntegrityError(f"Invalid file ID {file_id}")
        self._conn.commit()
        return int(file_id)

    def path_of(self, file_id: int) -> str:
        """Return the relative path of the file with the given ID.

        Raises:
            RecordNotFoundError: If there's no such file
        """
        row = self._conn.execute("SELECT Path FROM Files WHERE ROWID = ?", (file_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError(f"File {file_id} not in database")
        return str(row[0])

    def count(self) -> int:
        """Return the number of cached files."""
        return int(self._conn.execute("SELECT COUNT(*) FROM Files").fetchone()[0])

    # ========== Excluded Pairs ==========

    def is_excluded_pair(self, a: str, b: str) -> bool:
        """Return True if the files at relative paths a and b must not be grouped."""
        row = self._conn.execute(
            "SELECT 1 FROM ExcludedPairs WHERE (PathA = ? AND PathB = ?) OR (PathA = ? AND PathB = ?)",
            (a, b, b, a),
        ).fetchone()
        return row is not None

    def save_excluded_pair(self, a: str, b: str) -> None:
        """Record that a and b must not be grouped. Saving a pair twice is harmless."""
        first, second = sorted((a, b))
        self._conn.execute(
            "INSERT OR IGNORE INTO ExcludedPairs (PathA, PathB) VALUES (?, ?)",
            (first, second),
        )
        self._conn.commit()

    def excluded_pairs(self) -> list[tuple[str, str]]:
        """Return all excluded pairs, ordered by path."""
        rows = self._conn.execute(
            "SELECT PathA, PathB FROM ExcludedPairs ORDER BY PathA, PathB"
        ).fetchall()
        return [(a, b) for a, b in rows]
