"""Test fixtures for tilegen tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import numpy as np
import pytest

from tilegen.core.types import PyramidConfig

QUADRANT_COLORS = {
    "red": (200, 50, 50),
    "green": (50, 200, 50),
    "blue": (50, 50, 200),
    "purple": (150, 50, 150),
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_rgb_array() -> np.ndarray:
    """Create a 512x512 RGB test image with colored quadrants."""
    img = np.full((512, 512, 3), 255, dtype=np.uint8)
    img[0:256, 0:256] = QUADRANT_COLORS["red"]
    img[0:256, 256:512] = QUADRANT_COLORS["green"]
    img[256:512, 0:256] = QUADRANT_COLORS["blue"]
    img[256:512, 256:512] = QUADRANT_COLORS["purple"]
    return img


@pytest.fixture
def sample_image_path(temp_dir: Path, sample_rgb_array: np.ndarray) -> Path:
    """Write the quadrant test image as a PNG file."""
    from tilegen.pyramid.backends import from_numpy

    path = temp_dir / "input.png"
    from_numpy(sample_rgb_array).write_to_file(str(path))
    return path


@pytest.fixture
def landscape_config(temp_dir: Path) -> PyramidConfig:
    """1000x600 image with 256px tiles: 3 levels, 17 tiles."""
    return PyramidConfig.from_image(
        1000, 600, tile_size=256, max_magnification=1, output_dir=temp_dir / "out"
    )
