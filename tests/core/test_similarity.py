"""Tests for bitwise fingerprint comparison."""

from __future__ import annotations

import tracemalloc

import numpy as np
import pytest

from audiodupes.core.similarity import Alignment, best_alignment, compare_fingerprints


class TestCompareFingerprints:
    """Test suite for compare_fingerprints()."""

    @pytest.mark.parametrize(
        ("a", "b", "min_length", "score"),
        [
            ([0x0000FFE4], [0xFFFF0F14], False, 8 / 32),
            ([0xFFFFFFFE, 0x80000001], [0x7FFFFFFF, 0xF0000001], False, 59 / 64),
            (
                [0x00000000, 0x01010101, 0xFFFFFFFF, 0xCAFEBEEF],
                [0x01010101, 0xFFFFFFFF, 0xCAFEBEEF, 0x00000000],
                False,
                96 / 128,
            ),
            ([0xFFFFFFFF, 0x01010101], [0x00000000, 0xFFFFFFFF, 0x01010101], False, 64 / 96),
            ([0x00000000, 0xFFFFFFFF, 0x01010101], [0xFFFFFFFF, 0x01010101], True, 64 / 64),
        ],
    )
    def test_known_scores(self, a: list[int], b: list[int], min_length: bool, score: float) -> None:
        """Test scores for hand-checked fingerprints."""
        assert compare_fingerprints(a, b, min_length) == pytest.approx(score)

    def test_identical_fingerprints_score_one(self, synth) -> None:  # type: ignore
        """A nonempty fingerprint matches itself perfectly."""
        fp = synth.random(7, length=50)
        assert compare_fingerprints(fp, fp, False) == 1.0
        assert compare_fingerprints(fp, fp, True) == 1.0

    def test_symmetric(self, synth) -> None:  # type: ignore
        """Swapping the arguments doesn't change the score."""
        a = synth.random(1, length=40)
        b = synth.pad(synth.reencode(a, 2), words=3)[:31]
        for min_length in (False, True):
            assert compare_fingerprints(a, b, min_length) == compare_fingerprints(b, a, min_length)

    def test_min_length_never_lower(self, synth) -> None:  # type: ignore
        """Normalizing by the shorter length can only raise the score."""
        a = synth.random(3, length=40)
        for b in (a[5:], a[:-9], synth.random(4, length=25)):
            assert compare_fingerprints(a, b, True) >= compare_fingerprints(a, b, False)

    def test_offset_tail_found(self) -> None:
        """A fingerprint matched against its own tail finds the shifted alignment."""
        a = [0x12345678, 0x9ABCDEF0, 0x0F0F0F0F, 0xFFFF0000]
        b = a[2:]
        assert compare_fingerprints(a, b, True) == 1.0
        assert compare_fingerprints(a, b, False) == pytest.approx(0.5)

    def test_single_value_overlap_considered(self) -> None:
        """The last value of one fingerprint can align with the first of the other."""
        a = [0xFFFFFFFF, 0x00000000]
        b = [0x00000000, 0xFFFFFFF0]
        # No shift: 0 + 4 bits. a against b[1:]: 28 bits. a[1:] against b: 32 bits.
        assert best_alignment(a, b) == Alignment(32, 1, 0)
        assert compare_fingerprints(a, b) == pytest.approx(32 / 64)

    def test_empty_fingerprint_scores_zero(self) -> None:
        """Comparing against an empty fingerprint doesn't divide by zero."""
        assert compare_fingerprints([], [1, 2, 3]) == 0.0
        assert compare_fingerprints([1, 2, 3], []) == 0.0
        assert compare_fingerprints([], []) == 0.0

    def test_accepts_numpy_arrays(self) -> None:
        """Fingerprints may be passed as uint32 arrays."""
        a = np.array([0xFFFFFFFF, 0x01010101], dtype=np.uint32)
        b = np.array([0x00000000, 0xFFFFFFFF, 0x01010101], dtype=np.uint32)
        assert compare_fingerprints(a, b) == pytest.approx(64 / 96)


class TestBestAlignment:
    """Test suite for best_alignment()."""

    def test_skips_start_of_first(self) -> None:
        """Leading values of the first fingerprint are skipped."""
        a = [0x00000000, 0x01010101, 0xFFFFFFFF, 0xCAFEBEEF]
        b = [0x01010101, 0xFFFFFFFF, 0xCAFEBEEF, 0x00000000]
        assert best_alignment(a, b) == Alignment(96, 1, 0)

    def test_skips_start_of_second(self) -> None:
        """Leading values of the second fingerprint are skipped."""
        a = [0xFFFFFFFF, 0x01010101]
        b = [0x00000000, 0xFFFFFFFF, 0x01010101]
        assert best_alignment(a, b) == Alignment(64, 0, 1)

    def test_no_shift(self) -> None:
        """Identical fingerprints align without an offset."""
        a = [0x0F0F0F0F, 0x12345678, 0xFEDCBA98]
        assert best_alignment(a, a) == Alignment(96, 0, 0)

    def test_empty(self) -> None:
        """Empty input has no overlap."""
        assert best_alignment([], [1]) == Alignment(0, 0, 0)

    def test_long_fingerprints_use_linear_memory(self) -> None:
        """Full-track fingerprints are compared without a pairwise matrix."""
        rng = np.random.default_rng(7)
        a = rng.integers(0, 2**32, size=3000, dtype=np.uint64).astype(np.uint32)
        b = np.concatenate([np.zeros(7, dtype=np.uint32), a[:-7]])

        tracemalloc.start()
        try:
            alignment = best_alignment(a, b)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        assert alignment == Alignment(32 * 2993, 0, 7)
        # A 3000x3000 matrix would need tens of megabytes.
        assert peak < 2 * 1024 * 1024
