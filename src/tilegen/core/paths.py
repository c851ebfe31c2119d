"""Output layout helpers for the ``{z}/{x}/{y}.{ext}`` tile tree."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from .errors import OutputDirectoryError
from .types import PyramidConfig, TileTask

logger = logging.getLogger(__name__)


def tile_path(output_dir: Path, task: TileTask, extension: str) -> Path:
    """Return the file path of a tile: ``{output_dir}/{z}/{x}/{y}.{extension}``."""
    return Path(output_dir) / str(task.z) / str(task.x) / f"{task.y}.{extension}"


def tile_path_for(config: PyramidConfig, task: TileTask) -> Path:
    return tile_path(config.output_dir, task, config.extension)


def prepare_output_dirs(output_dir: Path, tasks: Iterable[TileTask]) -> int:
    """Create every ``{z}/{x}`` directory the tasks will write into.

    Runs once before dispatch so workers never race to create directories.
    Existing directories are left untouched, which makes re-runs safe.

    Args:
        output_dir: Root of the tile tree
        tasks: Planned tile tasks

    Returns:
        Number of unique column directories the run needs

    Raises:
        OutputDirectoryError: If a directory cannot be created
    """
    output_dir = Path(output_dir)
    unique_dirs = {output_dir / str(t.z) / str(t.x) for t in tasks}

    created = 0
    for directory in sorted(unique_dirs):
        if directory.is_dir():
            continue
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(directory, str(e)) from e
        created += 1

    logger.debug(
        "Prepared %d tile directories under %s (%d new)",
        len(unique_dirs), output_dir, created,
    )
    return len(unique_dirs)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically write bytes to a file.

    Writes to a temp file in the same directory, then replaces the target.
    ``os.replace()`` is atomic on both POSIX and Windows (same filesystem), so
    a tile path never holds a half-written image.
    """
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent, suffix=".tmp", prefix=f".{path.stem}"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
