"""Human-readable formatting of duplicate groups."""

from __future__ import annotations

from pathlib import Path

from audiodupes.core.database import FileInfo


def format_size(size: int) -> str:
    """Format a byte count, e.g. 2097152 -> '2.0 MB'."""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format a duration, e.g. 103.4 -> '1:43'."""
    total = int(round(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def format_groups(
    groups: list[list[FileInfo]],
    directory: Path | None = None,
    file_info: bool = True,
) -> str:
    """Render groups one path per line, with a blank line between groups.

    Args:
        groups: Groups returned by DuplicateScanner.scan()
        directory: If set, paths are printed joined to it
        file_info: Append each file's size and duration
    """
    blocks = []
    for group in groups:
        lines = []
        for info in group:
            path = str(directory / info.path) if directory is not None else info.path
            if file_info:
                path += f" ({format_size(info.size)}, {format_duration(info.duration)})"
            lines.append(path)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
