"""Worker functions for parallel tile generation.

This module exists separately from dispatcher.py so worker entry points are
importable top-level functions, which the ``spawn`` start method requires
(they cannot be defined in ``__main__``).
"""

from __future__ import annotations

import logging
import math
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from tilegen.core.paths import atomic_write_bytes, tile_path_for
from tilegen.core.types import PyramidConfig, TileTask

from .backends import TileRenderer
from .outcomes import Completed, Failed, Shutdown, Terminated
from .planner import coverage

logger = logging.getLogger(__name__)

RendererFactory = Callable[[PyramidConfig], TileRenderer]


def round_half_up(value: float) -> int:
    """Round .5 upwards, so adjacent tiles agree on their shared edge.

    The built-in ``round`` rounds half to even, which would make one tile's
    right edge and its neighbour's left edge disagree.
    """
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class SourceWindow:
    """Source pixels a tile covers, clamped to the image bounds."""

    left: int
    top: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def source_window(task: TileTask, config: PyramidConfig) -> SourceWindow:
    """Compute the clamped source window of a tile."""
    c = coverage(task.z, config.max_zoom, config.tile_size, config.max_magnification)
    sx = max(0, round_half_up(task.x * c))
    sy = max(0, round_half_up(task.y * c))
    ex = min(config.image_width, round_half_up((task.x + 1) * c))
    ey = min(config.image_height, round_half_up((task.y + 1) * c))
    return SourceWindow(sx, sy, ex - sx, ey - sy)


def render_tile(task: TileTask, config: PyramidConfig, renderer: TileRenderer) -> Path:
    """Render one tile and write it to ``{output_dir}/{z}/{x}/{y}.{ext}``.

    Tiles with no source pixels get the renderer's pre-built blank tile. For
    the rest, the clamped window is scaled to tile pixels and placed on a
    transparent canvas at the offset where the ideal grid cell starts, so
    rounding never shifts content across tile boundaries.

    Args:
        task: Tile to render
        config: Run configuration
        renderer: Image processing capability of this worker

    Returns:
        Path of the written tile
    """
    out_path = tile_path_for(config, task)
    window = source_window(task, config)

    if window.is_empty:
        atomic_write_bytes(out_path, renderer.blank_tile())
        return out_path

    c = coverage(task.z, config.max_zoom, config.tile_size, config.max_magnification)
    ts = config.tile_size

    region = renderer.extract_region(window.left, window.top, window.width, window.height)
    region = renderer.resample(
        region,
        max(1, round_half_up(window.width / c * ts)),
        max(1, round_half_up(window.height / c * ts)),
    )
    offset_x = round_half_up((window.left - task.x * c) / c * ts)
    offset_y = round_half_up((window.top - task.y * c) / c * ts)
    tile = renderer.composite_on_canvas(region, offset_x, offset_y)

    atomic_write_bytes(out_path, renderer.encode(tile))
    return out_path


def worker_main(
    worker_id: int,
    config: PyramidConfig,
    renderer_factory: RendererFactory,
    inbox: Any,
    outbox: Any,
) -> None:
    """Worker loop: take one message, answer with one outcome.

    Per-tile errors are reported as ``Failed`` and the loop continues. If the
    one-time renderer setup fails, every task this worker receives is
    reported as failed, so the pool still drains and terminates.

    Args:
        worker_id: Index of this worker in the pool
        config: Run configuration
        renderer_factory: Builds the image processing capability
        inbox: Queue of TileTask / Shutdown messages for this worker only
        outbox: Queue shared by all workers for outcomes
    """
    renderer: TileRenderer | None = None
    setup_error: str | None = None
    try:
        renderer = renderer_factory(config)
        renderer.blank_tile()
    except Exception as e:
        logger.error("Worker %d setup failed: %s", worker_id, e)
        setup_error = f"worker setup failed: {e}"

    while True:
        message = inbox.get()
        if isinstance(message, Shutdown):
            outbox.put(Terminated(worker_id))
            return

        task = TileTask(*message)
        if setup_error is not None:
            outbox.put(Failed(worker_id, task, setup_error))
            continue

        try:
            render_tile(task, config, renderer)
        except Exception as e:
            logger.debug("Worker %d failed on %s", worker_id, task, exc_info=True)
            outbox.put(Failed(worker_id, task, str(e) or type(e).__name__))
        else:
            outbox.put(Completed(worker_id, task))


def process_entry(
    worker_id: int,
    config: PyramidConfig,
    renderer_factory: RendererFactory,
    inbox: Any,
    outbox: Any,
) -> None:
    """Entry point of a worker process.

    Ctrl-C is left to the control process, which tears the pool down.
    """
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    worker_main(worker_id, config, renderer_factory, inbox, outbox)
