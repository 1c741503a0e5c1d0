"""Inverted index used to quickly find approximate fingerprint matches."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable


class LookupTable:
    """Maps truncated fingerprint values to the files containing them.

    32-bit fingerprint values are truncated to their upper ``bits`` bits to
    conserve space and tolerate noise in the low bits. Lookups are approximate:
    similar fingerprints can still differ in the kept bits, so every candidate
    returned by find() needs an exact comparison.
    """

    def __init__(self, bits: int = 16) -> None:
        if not 1 <= bits <= 32:
            raise ValueError(f"bits must be in the range [1, 32], got {bits}")
        self.bits = bits
        self._shift = 32 - bits
        # truncated value -> file ID -> occurrences of the value in the file
        self._table: dict[int, dict[int, int]] = defaultdict(dict)
        self._files: set[int] = set()

    def __len__(self) -> int:
        return len(self._files)

    def key(self, value: int) -> int:
        """Return the truncated form of a 32-bit fingerprint value."""
        return (value & 0xFFFFFFFF) >> self._shift

    def _keys(self, fingerprint: Iterable[int]) -> Counter[int]:
        return Counter(self.key(v) for v in fingerprint)

    def add(self, file_id: int, fingerprint: Iterable[int]) -> None:
        """Add a file's fingerprint to the table."""
        for key, count in self._keys(fingerprint).items():
            counts = self._table[key]
            counts[file_id] = counts.get(file_id, 0) + count
        self._files.add(file_id)

    def find(self, fingerprint: Iterable[int], threshold: int) -> set[int]:
        """Return files sharing at least threshold truncated values with fingerprint.

        A value repeated in the query only counts as many times as it appears in
        the indexed file: if the query contains value 4 twice but a file only
        contains it once, that file gets one hit for it.
        """
        hits: dict[int, int] = defaultdict(int)
        for key, query_count in self._keys(fingerprint).items():
            counts = self._table.get(key)
            if not counts:
                continue
            for file_id, file_count in counts.items():
                hits[file_id] += min(query_count, file_count)
        return {file_id for file_id, cnt in hits.items() if cnt >= threshold}
