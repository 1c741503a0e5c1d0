"""Tests for group formatting."""

from pathlib import Path

from audiodupes.core.database import FileInfo
from audiodupes.utils.report import format_duration, format_groups, format_size


def test_format_size() -> None:
    """Test byte counts are scaled."""
    assert format_size(512) == "512 B"
    assert format_size(2048) == "2.0 KB"
    assert format_size(2 * 1024 * 1024) == "2.0 MB"
    assert format_size(3 * 1024**3) == "3.0 GB"


def test_format_duration() -> None:
    """Test durations are shown as minutes and seconds."""
    assert format_duration(0) == "0:00"
    assert format_duration(103.4) == "1:43"
    assert format_duration(3600) == "60:00"


def test_format_groups() -> None:
    """Test groups are separated by blank lines."""
    groups = [
        [FileInfo(1, "64/a.mp3", 1024, 61.0), FileInfo(2, "orig/a.mp3", 2048, 61.0)],
        [FileInfo(3, "orig/b.mp3", 512, 5.0)],
    ]

    assert format_groups(groups, file_info=False) == "64/a.mp3\norig/a.mp3\n\norig/b.mp3"
    assert format_groups(groups, Path("music"), file_info=False).splitlines()[0] == "music/64/a.mp3"
    assert format_groups(groups).splitlines()[0] == "64/a.mp3 (1.0 KB, 1:01)"


def test_format_no_groups() -> None:
    """Test no groups renders as an empty string."""
    assert format_groups([]) == ""
