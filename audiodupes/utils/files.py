"""Audio file discovery."""

import os
import re
from pathlib import Path

from audiodupes.core.config import DEFAULT_FILE_PATTERN


def find_audio_files(directory: Path, pattern: str | re.Pattern[str] = DEFAULT_FILE_PATTERN) -> list[Path]:
    """Find all audio files under directory.

    Args:
        directory: Directory to search recursively. A symlinked directory is
            followed, but symlinks to directories inside it are not.
        pattern: Regular expression matched case-insensitively against file names

    Returns:
        Sorted list of audio file paths

    Raises:
        ValueError: If directory doesn't exist or isn't a directory
    """
    if not directory.exists():
        raise ValueError(f"Directory does not exist: {directory}")
    if not directory.is_dir():
        raise ValueError(f"{directory} is not a directory")

    if isinstance(pattern, str):
        pattern = re.compile(pattern, re.IGNORECASE)

    files: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(directory.resolve()):
        for name in filenames:
            path = Path(dirpath) / name
            if pattern.search(name) and path.is_file():
                files.append(path)
    return sorted(files)
