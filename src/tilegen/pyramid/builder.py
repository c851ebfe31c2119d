"""Tile pyramid generation for one large image."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from tilegen.config import (
    DEFAULT_MAX_MAGNIFICATION,
    DEFAULT_TILE_FORMAT,
    DEFAULT_TILE_SIZE,
    DEFAULT_WORKERS,
)
from tilegen.core.paths import prepare_output_dirs
from tilegen.core.types import PyramidConfig

from .backends import VipsTileRenderer, probe
from .dispatcher import RunSummary, WorkerPool
from .planner import plan
from .progress import RunProgress
from .worker import RendererFactory

logger = logging.getLogger(__name__)


def configure(
    input_path: Path,
    output_dir: Path,
    tile_size: int = DEFAULT_TILE_SIZE,
    max_magnification: int = DEFAULT_MAX_MAGNIFICATION,
    tile_format: str = DEFAULT_TILE_FORMAT,
) -> PyramidConfig:
    """Read the source image dimensions and build the run configuration.

    Raises:
        InvalidImageError: If the image cannot be read
        InvalidDimensionsError: If dimensions or tiling parameters are invalid
    """
    input_path = Path(input_path)
    width, height = probe(input_path)
    config = PyramidConfig.from_image(
        width,
        height,
        tile_size=tile_size,
        max_magnification=max_magnification,
        tile_format=tile_format,
        input_path=input_path,
        output_dir=Path(output_dir),
    )
    logger.info(
        "Loaded %s: %d x %d px, max zoom %d", input_path.name, width, height, config.max_zoom
    )
    return config


def build_pyramid(
    input_path: Path,
    output_dir: Path,
    tile_size: int = DEFAULT_TILE_SIZE,
    max_magnification: int = DEFAULT_MAX_MAGNIFICATION,
    tile_format: str = DEFAULT_TILE_FORMAT,
    workers: int = DEFAULT_WORKERS,
    use_threads: bool = False,
    progress_callback: Callable[[RunProgress], None] | None = None,
    cancel_event: threading.Event | None = None,
    renderer_factory: RendererFactory = VipsTileRenderer,
) -> RunSummary:
    """Build a full tile pyramid into ``{output_dir}/{z}/{x}/{y}.{ext}``.

    The whole pyramid is always regenerated; existing tiles are overwritten.

    Args:
        input_path: Source image
        output_dir: Root of the tile tree
        tile_size: Tile edge in pixels
        max_magnification: Source-pixel density multiplier at the deepest level
        tile_format: png, jpg, webp or avif
        workers: Worker pool size
        use_threads: Run workers as threads instead of processes
        progress_callback: Optional callback(RunProgress) per finished tile
        cancel_event: Optional event that stops further dispatch when set
        renderer_factory: Image processing capability for each worker

    Returns:
        RunSummary of the run
    """
    config = configure(input_path, output_dir, tile_size, max_magnification, tile_format)
    tasks = plan(config)
    prepare_output_dirs(config.output_dir, tasks)

    pool = WorkerPool(
        config,
        renderer_factory=renderer_factory,
        workers=workers,
        use_threads=use_threads,
        progress_callback=progress_callback,
        cancel_event=cancel_event,
    )
    return pool.run(tasks)
