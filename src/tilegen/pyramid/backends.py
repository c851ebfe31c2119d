"""Image processing backend using PyVIPS.

Workers never touch pixels directly; they call a :class:`TileRenderer`,
which extracts a source window, resamples it, places it on a transparent
canvas and encodes the tile. :class:`VipsTileRenderer` is the libvips
implementation. libvips streams regions on demand, so a worker never holds
the whole source image in memory.

Usage:
    from tilegen.pyramid.backends import VipsTileRenderer, probe

    width, height = probe(Path("input.png"))
    renderer = VipsTileRenderer(config)
    region = renderer.extract_region(0, 0, 256, 256)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import numpy as np

from tilegen.config import JPEG_QUALITY
from tilegen.core.errors import InvalidImageError
from tilegen.core.types import PyramidConfig

# pyvips is imported quietly in tilegen/__init__.py first, so libvips
# module warnings are already suppressed here.
_HAS_VIPS = False
_vips_import_error: str | None = None
pyvips: Any = None

try:
    import pyvips
    _HAS_VIPS = True
except (ImportError, OSError) as e:
    _vips_import_error = str(e)


def is_vips_available() -> bool:
    """Check if PyVIPS is available.

    Returns:
        True if pyvips is installed and working
    """
    return _HAS_VIPS


def require_vips() -> None:
    """Raise RuntimeError if pyvips is not available."""
    if not _HAS_VIPS:
        raise RuntimeError(
            f"PyVIPS is required but not available: {_vips_import_error}\n"
            "Install pyvips and libvips: pip install pyvips"
        )


def probe(path: Path) -> tuple[int, int]:
    """Read the dimensions of an image without decoding its pixels.

    Args:
        path: Path to the source image

    Returns:
        (width, height) in pixels

    Raises:
        InvalidImageError: If the image cannot be opened or has no pixels
    """
    require_vips()
    try:
        image = pyvips.Image.new_from_file(str(path))
    except pyvips.error.Error as e:
        raise InvalidImageError(path, str(e).strip()) from e

    if not image.width or not image.height:
        raise InvalidImageError(path, "Invalid image dimensions")
    return image.width, image.height


def from_numpy(arr: np.ndarray) -> "pyvips.Image":
    """Convert a numpy array (H, W, bands) uint8 to a pyvips image."""
    require_vips()
    height, width = arr.shape[:2]
    bands = arr.shape[2] if arr.ndim == 3 else 1
    arr = np.ascontiguousarray(arr, dtype=np.uint8)
    image = pyvips.Image.new_from_memory(arr.tobytes(), width, height, bands, "uchar")
    if bands >= 3:
        image = image.copy(interpretation="srgb")
    return image


def to_numpy(image: "pyvips.Image") -> np.ndarray:
    """Convert a pyvips image to a numpy array (H, W, bands) uint8."""
    data = image.cast("uchar").write_to_memory()
    return np.ndarray(
        buffer=data,
        dtype=np.uint8,
        shape=(image.height, image.width, image.bands),
    )


def _to_rgba(image: "pyvips.Image") -> "pyvips.Image":
    """Normalise any source image to 8-bit sRGB with an alpha band."""
    if image.bands > 4:
        image = image.extract_band(0, n=4)
    if image.bands < 3 or image.interpretation in ("rgb16", "grey16"):
        image = image.colourspace("srgb")
    if image.bands == 3:
        image = image.bandjoin(255)
    if image.format != "uchar":
        image = image.cast("uchar")
    return image


class TileRenderer(ABC):
    """Image processing capability used by a worker to produce one tile.

    A renderer is built once per worker and reused for every task the
    worker receives.
    """

    def __init__(self, config: PyramidConfig) -> None:
        self.config = config
        self._blank: bytes | None = None

    @abstractmethod
    def extract_region(self, left: int, top: int, width: int, height: int) -> Any:
        """Cut a window out of the source image."""

    @abstractmethod
    def resample(self, region: Any, width: int, height: int) -> Any:
        """Scale a region to exactly (width, height) without smoothing."""

    @abstractmethod
    def composite_on_canvas(self, region: Any, left: int, top: int) -> Any:
        """Place a region on a transparent tile-sized canvas at (left, top)."""

    @abstractmethod
    def encode(self, tile: Any) -> bytes:
        """Encode a tile in the configured format."""

    @abstractmethod
    def new_canvas(self) -> Any:
        """Create a fully transparent tile-sized canvas."""

    def blank_tile(self) -> bytes:
        """Encoded fully transparent tile, built once and reused."""
        if self._blank is None:
            self._blank = self.encode(self.new_canvas())
        return self._blank


class VipsTileRenderer(TileRenderer):
    """PyVIPS-based tile renderer.

    Opens the source image independently (one handle per worker) with random
    access, since tiles are cut from arbitrary positions.
    """

    def __init__(self, config: PyramidConfig) -> None:
        super().__init__(config)
        require_vips()
        if config.input_path is None:
            raise InvalidImageError(None, "No input path configured")
        try:
            source = pyvips.Image.new_from_file(str(config.input_path))
        except pyvips.error.Error as e:
            raise InvalidImageError(config.input_path, str(e).strip()) from e
        self._source = _to_rgba(source)

    def extract_region(self, left: int, top: int, width: int, height: int) -> "pyvips.Image":
        return self._source.crop(left, top, width, height)

    def resample(self, region: "pyvips.Image", width: int, height: int) -> "pyvips.Image":
        # Nearest neighbour: interpolation would bleed across tile boundaries
        resized = region.resize(
            width / region.width,
            vscale=height / region.height,
            kernel="nearest",
        )
        if resized.width != width or resized.height != height:
            resized = resized.gravity("north-west", width, height, extend="copy")
        return resized

    def new_canvas(self) -> "pyvips.Image":
        size = self.config.tile_size
        return (
            pyvips.Image.black(size, size, bands=4)
            .cast("uchar")
            .copy(interpretation="srgb")
        )

    def composite_on_canvas(
        self, region: "pyvips.Image", left: int, top: int
    ) -> "pyvips.Image":
        # insert() clips anything that falls outside the canvas
        return self.new_canvas().insert(region, left, top)

    def encode(self, tile: "pyvips.Image") -> bytes:
        fmt = self.config.tile_format
        if fmt == "jpg":
            # JPEG has no alpha channel
            return tile.flatten(background=[0, 0, 0]).write_to_buffer(
                ".jpg", Q=JPEG_QUALITY
            )
        return tile.write_to_buffer(f".{fmt}")
