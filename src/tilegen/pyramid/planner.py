"""Pyramid planning: zoom count, per-level grids and the tile task list.

Everything here is a pure function of the image dimensions and tiling
parameters. Level 0 is the coarsest level (the whole image fits one tile);
``max_zoom`` is the finest, where one tile edge spans
``tile_size / max_magnification`` source pixels.
"""

from __future__ import annotations

import logging
import math

from tilegen.core.errors import InvalidDimensionsError
from tilegen.core.types import LevelInfo, PyramidConfig, TileTask

logger = logging.getLogger(__name__)


def calculate_max_zoom(
    max_magnification: int, tile_size: int, width: int, height: int
) -> int:
    """Calculate the deepest zoom level for an image.

    This is the smallest level at which the whole image, magnified by
    ``max_magnification``, is covered by tiles at full density:
    ``ceil(log2(max(width, height) * max_magnification / tile_size))``.
    Images that already fit in one tile get level 0.

    Args:
        max_magnification: Source-pixel density multiplier at the deepest level
        tile_size: Tile edge in pixels
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        Deepest zoom level (>= 0)

    Raises:
        InvalidDimensionsError: If any argument is not positive
    """
    if width <= 0 or height <= 0 or tile_size <= 0 or max_magnification <= 0:
        raise InvalidDimensionsError(width, height, tile_size, max_magnification)

    max_dim = max(width, height)
    return max(0, math.ceil(math.log2(max_dim * max_magnification / tile_size)))


def coverage(z: int, max_zoom: int, tile_size: int, max_magnification: int) -> float:
    """Source pixels represented by one tile edge at level ``z``.

    Halves with every level towards ``max_zoom``, where it equals
    ``tile_size / max_magnification``.
    """
    return (tile_size / max_magnification) * 2 ** (max_zoom - z)


def grid_size(
    z: int,
    width: int,
    height: int,
    max_zoom: int,
    tile_size: int,
    max_magnification: int,
) -> tuple[int, int]:
    """Number of (cols, rows) at level ``z``."""
    px_per_tile = coverage(z, max_zoom, tile_size, max_magnification)
    return math.ceil(width / px_per_tile), math.ceil(height / px_per_tile)


def build_tasks(
    width: int,
    height: int,
    max_zoom: int,
    tile_size: int,
    max_magnification: int,
) -> list[TileTask]:
    """Enumerate every tile of the pyramid.

    Order is level-major, then column, then row. Edge tiles whose source
    window is smaller than a full tile are included; partial coverage is
    handled when the tile is rendered.
    """
    tasks: list[TileTask] = []
    for z in range(max_zoom + 1):
        cols, rows = grid_size(z, width, height, max_zoom, tile_size, max_magnification)
        for x in range(cols):
            for y in range(rows):
                tasks.append(TileTask(z, x, y))
    return tasks


def plan(config: PyramidConfig) -> list[TileTask]:
    """Build the task list for a config."""
    tasks = build_tasks(
        config.image_width,
        config.image_height,
        config.max_zoom,
        config.tile_size,
        config.max_magnification,
    )
    logger.info(
        "Planned %d tiles over %d levels for %dx%d image",
        len(tasks), config.max_zoom + 1, config.image_width, config.image_height,
    )
    return tasks


def level_layout(config: PyramidConfig) -> list[LevelInfo]:
    """Describe the grid of every level.

    Returns:
        List of LevelInfo, level 0 (coarsest) first
    """
    levels = []
    for z in range(config.max_zoom + 1):
        cols, rows = grid_size(
            z,
            config.image_width,
            config.image_height,
            config.max_zoom,
            config.tile_size,
            config.max_magnification,
        )
        levels.append(LevelInfo(
            level=z,
            downsample=2 ** (config.max_zoom - z),
            cols=cols,
            rows=rows,
            coverage=coverage(z, config.max_zoom, config.tile_size, config.max_magnification),
        ))
    return levels
