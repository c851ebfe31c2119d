"""Tile pyramid planning and parallel generation."""

from .backends import (
    TileRenderer,
    VipsTileRenderer,
    is_vips_available,
    probe,
)
from .builder import build_pyramid, configure
from .dispatcher import RunSummary, WorkerPool
from .outcomes import SHUTDOWN, Completed, Failed, Terminated
from .planner import (
    build_tasks,
    calculate_max_zoom,
    coverage,
    grid_size,
    level_layout,
    plan,
)
from .progress import ProgressTracker, RunProgress

__all__ = [
    "TileRenderer",
    "VipsTileRenderer",
    "is_vips_available",
    "probe",
    "build_pyramid",
    "configure",
    "RunSummary",
    "WorkerPool",
    "SHUTDOWN",
    "Completed",
    "Failed",
    "Terminated",
    "build_tasks",
    "calculate_max_zoom",
    "coverage",
    "grid_size",
    "level_layout",
    "plan",
    "ProgressTracker",
    "RunProgress",
]
