"""Core types, errors and output layout for tilegen."""

from .errors import (
    InvalidDimensionsError,
    InvalidImageError,
    OutputDirectoryError,
    TilegenError,
    UnknownOutcomeError,
)
from .paths import prepare_output_dirs, tile_path, tile_path_for
from .types import LevelInfo, PyramidConfig, TileTask

__all__ = [
    "TileTask",
    "LevelInfo",
    "PyramidConfig",
    "TilegenError",
    "InvalidDimensionsError",
    "InvalidImageError",
    "OutputDirectoryError",
    "UnknownOutcomeError",
    "prepare_output_dirs",
    "tile_path",
    "tile_path_for",
]
