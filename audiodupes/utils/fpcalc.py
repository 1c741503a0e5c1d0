"""Fingerprint generation using Chromaprint's fpcalc utility."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from audiodupes.core.config import FpcalcConfig
from audiodupes.core.errors import EmptyFingerprintError, GeneratorError

logger = logging.getLogger(__name__)

EMPTY_FINGERPRINT_MESSAGE = "ERROR: Empty fingerprint"


@dataclass
class FingerprintResult:
    """Result of fingerprinting a file."""

    fingerprint: list[int]
    duration: float  # seconds


class FingerprintGenerator(Protocol):
    """Anything that can turn an audio file into a fingerprint."""

    def generate(self, path: Path, settings: FpcalcConfig) -> FingerprintResult: ...


def build_args(path: Path, settings: FpcalcConfig) -> list[str]:
    """Return fpcalc command-line arguments (excluding the executable)."""
    args = [
        "-raw",
        "-json",
        "-length",
        f"{settings.length:.3f}",
        "-algorithm",
        str(settings.algorithm),
    ]
    if settings.chunk > 0:
        args += ["-chunk", f"{settings.chunk:.3f}"]
    if settings.overlap:
        args.append("-overlap")
    args.append(str(path))
    return args


class Fpcalc:
    """Runs fpcalc as a subprocess."""

    def __init__(self, executable: str = "fpcalc"):
        self.executable = executable

    def available(self) -> bool:
        """Return False if the fpcalc executable can't be found."""
        return shutil.which(self.executable) is not None

    def generate(self, path: Path, settings: FpcalcConfig) -> FingerprintResult:
        """Compute a fingerprint for path.

        Raises:
            EmptyFingerprintError: If the audio is too short to fingerprint
            GeneratorError: If fpcalc fails or prints something unexpected
        """
        cmd = [self.executable, *build_args(path, settings)]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise GeneratorError(f"Failed running {self.executable}: {e}") from e

        if proc.returncode != 0:
            # Include the first line of stderr to explain the failure.
            stderr = (proc.stderr or "").split("\n", 1)[0].strip()
            if stderr == EMPTY_FINGERPRINT_MESSAGE:
                raise EmptyFingerprintError("empty fingerprint")
            msg = f"{self.executable} exited with status {proc.returncode}"
            if stderr:
                msg += f" ({stderr})"
            raise GeneratorError(msg)

        return parse_output(proc.stdout)


def parse_output(output: str) -> FingerprintResult:
    """Parse fpcalc's -raw -json output.

    Raises:
        GeneratorError: If the output isn't the expected JSON object
    """
    try:
        data = json.loads(output)
        fingerprint = [int(v) for v in data["fingerprint"]]
        duration = float(data["duration"])
    except (ValueError, KeyError, TypeError) as e:
        raise GeneratorError(f"Unexpected fpcalc output: {e}") from e
    if not fingerprint:
        raise EmptyFingerprintError("empty fingerprint")
    return FingerprintResult(fingerprint=fingerprint, duration=duration)
