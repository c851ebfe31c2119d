"""Shared type definitions for tilegen core module."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple


class TileTask(NamedTuple):
    """Coordinate of a tile in the pyramid.

    Attributes:
        z: Zoom level (0 = coarsest, max_zoom = finest)
        x: Column index (0-based)
        y: Row index (0-based)
    """

    z: int
    x: int
    y: int

    def __str__(self) -> str:
        return f"z{self.z}-x{self.x}-y{self.y}"


@dataclass
class LevelInfo:
    """Information about a pyramid level.

    Attributes:
        level: Zoom level (0 = lowest resolution)
        downsample: Downsample factor relative to the deepest level (1 = deepest)
        cols: Number of tile columns at this level
        rows: Number of tile rows at this level
        coverage: Source pixels covered by one tile edge at this level
    """

    level: int
    downsample: int
    cols: int
    rows: int
    coverage: float = 0.0

    @property
    def tile_count(self) -> int:
        return self.cols * self.rows


@dataclass(frozen=True)
class PyramidConfig:
    """Immutable description of one pyramid run.

    Built once at startup and handed to the planner and every worker. It is
    picklable so it can be sent to worker processes.

    Attributes:
        tile_size: Tile edge in pixels
        max_magnification: Source-pixel density multiplier at the deepest level
        image_width: Source image width in pixels
        image_height: Source image height in pixels
        max_zoom: Deepest zoom level (see ``calculate_max_zoom``)
        tile_format: Output format, also the file extension
        input_path: Source image path
        output_dir: Root of the ``{z}/{x}/{y}`` tree
    """

    tile_size: int
    max_magnification: int
    image_width: int
    image_height: int
    max_zoom: int
    tile_format: str = "png"
    input_path: Path | None = None
    output_dir: Path = field(default_factory=lambda: Path("out"))

    @classmethod
    def from_image(
        cls,
        width: int,
        height: int,
        tile_size: int = 256,
        max_magnification: int = 1,
        tile_format: str = "png",
        input_path: Path | None = None,
        output_dir: Path | None = None,
    ) -> PyramidConfig:
        """Build a config for an image, deriving ``max_zoom``.

        Raises:
            InvalidDimensionsError: If any dimension or tiling parameter is
                non-positive
        """
        from tilegen.pyramid.planner import calculate_max_zoom

        max_zoom = calculate_max_zoom(max_magnification, tile_size, width, height)
        return cls(
            tile_size=tile_size,
            max_magnification=max_magnification,
            image_width=width,
            image_height=height,
            max_zoom=max_zoom,
            tile_format=tile_format.lower(),
            input_path=Path(input_path) if input_path is not None else None,
            output_dir=Path(output_dir) if output_dir is not None else Path("out"),
        )

    @property
    def extension(self) -> str:
        return self.tile_format
