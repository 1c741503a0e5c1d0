"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest

from audiodupes.core.config import FpcalcConfig, ScanConfig
from audiodupes.core.database import FingerprintDB
from audiodupes.core.errors import GeneratorError
from audiodupes.utils.fpcalc import FingerprintResult


class FakeFpcalc:
    """Stands in for fpcalc, returning canned results keyed by path relative to root."""

    def __init__(self, root: Path, results: dict[str, FingerprintResult | Exception] | None = None):
        self.root = root
        self.results: dict[str, FingerprintResult | Exception] = dict(results or {})
        self.calls: list[str] = []

    def available(self) -> bool:
        return True

    def generate(self, path: Path, settings: FpcalcConfig) -> FingerprintResult:
        rel = Path(path).resolve().relative_to(self.root.resolve()).as_posix()
        self.calls.append(rel)
        result = self.results.get(rel)
        if result is None:
            raise GeneratorError(f"no fingerprint for {rel}")
        if isinstance(result, Exception):
            raise result
        return result


def random_fingerprint(seed: int, length: int = 360) -> list[int]:
    """Return a reproducible pseudo-random fingerprint."""
    rng = np.random.default_rng(seed)
    return [int(v) for v in rng.integers(0, 2**32, size=length, dtype=np.uint64)]


def reencode(fingerprint: list[int], seed: int, flip_prob: float = 0.02) -> list[int]:
    """Emulate lossy re-encoding by flipping a small fraction of bits."""
    rng = np.random.default_rng(seed)
    out = []
    for v in fingerprint:
        mask = 0
        for bit in np.flatnonzero(rng.random(32) < flip_prob):
            mask |= 1 << int(bit)
        out.append(v ^ mask)
    return out


def pad(fingerprint: list[int], words: int = 6) -> list[int]:
    """Emulate leading silence: the track starts later and fpcalc's length cap cuts its end."""
    return ([0] * words + fingerprint)[: len(fingerprint)]


@pytest.fixture
def fpcalc_config() -> FpcalcConfig:
    """Provide default fpcalc settings."""
    return FpcalcConfig()


@pytest.fixture
def scan_config() -> ScanConfig:
    """Provide scan settings without progress logging."""
    return ScanConfig(log_interval_sec=0)


@pytest.fixture
def db(tmp_path: Path, fpcalc_config: FpcalcConfig) -> Iterator[FingerprintDB]:
    """Provide an open fingerprint database."""
    database = FingerprintDB.open(tmp_path / "test.db", fpcalc_config)
    yield database
    database.close()


@pytest.fixture
def music_dir(tmp_path: Path) -> Path:
    """Provide an empty directory for audio files."""
    path = tmp_path / "music"
    path.mkdir()
    return path


@pytest.fixture
def make_fake_fpcalc():
    """Provide a factory for FakeFpcalc instances."""
    return FakeFpcalc


@pytest.fixture
def track_library(music_dir: Path) -> FakeFpcalc:
    """Provide two tracks in three renditions each: original, re-encoded and padded.

    Files are written under music_dir as orig/, 64/ and pad/ subdirectories.
    """
    results: dict[str, FingerprintResult | Exception] = {}
    for seed, name in enumerate(["Fanfare for Space.mp3", "Honey Bee.mp3"], start=1):
        orig = random_fingerprint(seed)
        variants = {
            "orig": orig,
            "64": reencode(orig, seed + 100),
            "pad": pad(orig),
        }
        for subdir, fingerprint in variants.items():
            path = music_dir / subdir / name
            path.parent.mkdir(exist_ok=True)
            path.write_bytes(b"\0" * (1000 * seed + len(subdir)))
            results[f"{subdir}/{name}"] = FingerprintResult(fingerprint=fingerprint, duration=45.0)
    return FakeFpcalc(music_dir, results)


@pytest.fixture
def synth():
    """Provide synthetic fingerprint helpers."""

    class Synth:
        random = staticmethod(random_fingerprint)
        reencode = staticmethod(reencode)
        pad = staticmethod(pad)

    return Synth
