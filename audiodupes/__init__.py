"""audiodupes - Find near-duplicate audio files by comparing acoustic fingerprints.

Fingerprints are computed by Chromaprint's fpcalc and cached in SQLite.
Similar files are found with a coarse lookup table over truncated fingerprint
values, confirmed with a bitwise comparison over all alignments, and grouped
as connected components.
"""

__version__ = "0.1.0"

from .core.database import FileInfo, FingerprintDB
from .core.scanner import DuplicateScanner
from .core.similarity import compare_fingerprints

__all__ = ["DuplicateScanner", "FileInfo", "FingerprintDB", "compare_fingerprints"]
