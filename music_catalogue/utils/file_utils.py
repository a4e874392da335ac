"""File utility functions for indexing runs.

Handles audio file discovery, existence checks and the run lock.
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath

from loguru import logger

from .errors import IndexLockedError


def find_audio_files(root: Path, extensions: set[str]) -> list[str]:
    """Find all audio files under a root directory.

    Args:
        root: Music root directory
        extensions: Extensions to include (e.g., {'.mp3', '.flac'}), matched case-insensitively

    Returns:
        Sorted, duplicate-free list of '/'-separated paths relative to root
    """
    if not root.exists():
        logger.warning(f"Music directory {root} does not exist")
        return []

    extensions_lower = {ext.lower() for ext in extensions}
    found = {
        item.relative_to(root).as_posix()
        for item in root.rglob("*")
        if item.suffix.lower() in extensions_lower and item.is_file()
    }
    return sorted(found)


def file_exists(file_path: Path) -> bool:
    """Check whether a file exists.

    A missing file and a file we may not stat both count as absent. Any other
    OS error is an environment problem and propagates.

    Args:
        file_path: Path to check

    Returns:
        True if the path exists
    """
    try:
        file_path.stat()
    except (FileNotFoundError, PermissionError):
        return False
    return True


def get_base_dir(rel_path: str) -> str:
    """Return the first segment of a relative path.

    Examples:
        >>> get_base_dir("Music/Artist/01.Song.mp3")
        'Music'
        >>> get_base_dir("/Games/track.ogg")
        'Games'
    """
    parts = PurePosixPath(rel_path.lstrip("/")).parts
    return parts[0] if parts else ""


def get_extension(rel_path: str) -> str:
    """Return the lowercase extension of a path without the dot."""
    return PurePosixPath(rel_path).suffix.lower().lstrip(".")


@contextmanager
def index_lock(lock_path: Path) -> Iterator[Path]:
    """Hold the run lock for the duration of an indexing run.

    The lock file is created exclusively, so a second run against the same
    cache directory fails fast instead of interleaving writes.

    Args:
        lock_path: Lock file path inside the cache directory

    Raises:
        IndexLockedError: If another run holds the lock
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as e:
        try:
            holder = lock_path.read_text().strip() or "unknown"
        except OSError:
            holder = "unknown"
        raise IndexLockedError(
            f"Another indexing run (pid {holder}) holds {lock_path}; "
            f"remove it if that process is gone"
        ) from e

    try:
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)
