"""Bitwise comparison of fingerprints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

BITS_PER_VALUE = 32


class Alignment(NamedTuple):
    """Best alignment found between two fingerprints.

    Attributes:
        bits: Number of identical bits across the overlapping values
        a_offset: Number of leading values skipped in the first fingerprint
        b_offset: Number of leading values skipped in the second fingerprint
    """

    bits: int
    a_offset: int
    b_offset: int


def _as_array(fingerprint: Sequence[int] | np.ndarray) -> np.ndarray:
    return np.asarray(fingerprint, dtype=np.uint32)


def best_alignment(a: Sequence[int] | np.ndarray, b: Sequence[int] | np.ndarray) -> Alignment:
    """Find the relative offset at which a and b share the most identical bits.

    Every alignment is checked, from a single overlapping value up to full
    overlap with no shift, skipping values at the start of either a or b.
    """
    a = _as_array(a)
    b = _as_array(b)
    if len(a) == 0 or len(b) == 0:
        return Alignment(0, 0, 0)

    best = Alignment(_same_bits(a, b), 0, 0)
    for i in range(1, len(a)):
        cnt = _same_bits(a[i:], b)
        if cnt > best.bits:
            best = Alignment(cnt, i, 0)
    for j in range(1, len(b)):
        cnt = _same_bits(a, b[j:])
        if cnt > best.bits:
            best = Alignment(cnt, 0, j)
    return best


def _same_bits(a: np.ndarray, b: np.ndarray) -> int:
    """Return the number of identical bits where a and b overlap from their starts."""
    n = min(len(a), len(b))
    diff = int(np.bitwise_count(a[:n] ^ b[:n]).sum(dtype=np.int64))
    return BITS_PER_VALUE * n - diff


def compare_fingerprints(
    a: Sequence[int] | np.ndarray,
    b: Sequence[int] | np.ndarray,
    min_length: bool = False,
) -> float:
    """Return the ratio of identical bits in a and b at their best alignment.

    The ratio is relative to the total bits in the longer of the two
    fingerprints, or the shorter one if min_length is True (so an unmatched
    tail isn't penalized). The result is in [0.0, 1.0] and symmetric in a and b.
    """
    len_a, len_b = len(a), len(b)
    if len_a == 0 or len_b == 0:
        return 0.0
    total = min(len_a, len_b) if min_length else max(len_a, len_b)
    return best_alignment(a, b).bits / (BITS_PER_VALUE * total)
