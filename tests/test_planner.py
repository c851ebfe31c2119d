"""Tests for pyramid planning."""

from __future__ import annotations

import math

import pytest

from tilegen.core.errors import InvalidDimensionsError
from tilegen.core.types import LevelInfo, PyramidConfig, TileTask
from tilegen.pyramid.planner import (
    build_tasks,
    calculate_max_zoom,
    coverage,
    grid_size,
    level_layout,
    plan,
)


class TestCalculateMaxZoom:
    """Tests for the deepest zoom level."""

    @pytest.mark.parametrize(
        "max_mag, tile_size, width, height, expected",
        [
            # ceil(log2(1000/256)) = ceil(1.97)
            (1, 256, 1000, 600, 2),
            # Image exactly one tile
            (1, 256, 256, 256, 0),
            # Image smaller than a tile never goes negative
            (1, 256, 100, 40, 0),
            # Height is the larger dimension
            (1, 256, 300, 2048, 3),
            # Magnification 2 adds one level
            (2, 256, 1024, 1024, 3),
            # ceil(log2(1000 * 2 / 256)) = ceil(2.97)
            (2, 256, 1000, 600, 3),
            (1, 512, 4096, 4096, 3),
        ],
        ids=[
            "landscape", "single-tile", "smaller-than-tile", "portrait",
            "mag2-square", "mag2-landscape", "tile512",
        ],
    )
    def test_max_zoom(self, max_mag, tile_size, width, height, expected) -> None:
        assert calculate_max_zoom(max_mag, tile_size, width, height) == expected

    @pytest.mark.parametrize(
        "width, height, tile_size, max_mag",
        [(0, 100, 256, 1), (100, 0, 256, 1), (-5, 100, 256, 1),
         (100, 100, 0, 1), (100, 100, 256, 0)],
    )
    def test_invalid_dimensions(self, width, height, tile_size, max_mag) -> None:
        with pytest.raises(InvalidDimensionsError):
            calculate_max_zoom(max_mag, tile_size, width, height)

    def test_invalid_dimensions_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            calculate_max_zoom(1, 256, 0, 0)

    @pytest.mark.parametrize(
        "width, height", [(1000, 600), (257, 3), (4096, 4096), (5000, 1200), (255, 255)]
    )
    def test_deepest_level_is_minimal(self, width: int, height: int) -> None:
        """At max_zoom one tile spans at most tile_size px; one level up it spans more."""
        tile_size = 256
        max_zoom = calculate_max_zoom(1, tile_size, width, height)
        assert coverage(max_zoom, max_zoom, tile_size, 1) <= tile_size
        if max_zoom > 0:
            assert coverage(max_zoom - 1, max_zoom, tile_size, 1) > tile_size


class TestCoverage:
    """Tests for source pixels per tile edge."""

    def test_deepest_level(self) -> None:
        assert coverage(2, 2, 256, 1) == 256
        assert coverage(3, 3, 256, 2) == 128

    def test_halves_per_level(self) -> None:
        values = [coverage(z, 4, 256, 1) for z in range(5)]
        for coarse, fine in zip(values, values[1:]):
            assert coarse == fine * 2

    def test_single_tile_image(self) -> None:
        assert coverage(0, 0, 256, 1) == 256


class TestBuildTasks:
    """Tests for task enumeration."""

    def test_landscape_scenario(self) -> None:
        """1000x600 @ 256px: 1 + 4 + 12 tiles."""
        tasks = build_tasks(1000, 600, 2, 256, 1)

        per_level = {z: [t for t in tasks if t.z == z] for z in range(3)}
        assert len(per_level[0]) == 1
        assert len(per_level[1]) == 4
        assert len(per_level[2]) == 12
        assert grid_size(2, 1000, 600, 2, 256, 1) == (4, 3)
        assert len(tasks) == 17

    def test_single_tile_scenario(self) -> None:
        assert build_tasks(256, 256, 0, 256, 1) == [TileTask(0, 0, 0)]

    def test_order_is_level_then_column_then_row(self) -> None:
        tasks = build_tasks(512, 512, 1, 256, 1)
        assert tasks == [
            TileTask(0, 0, 0),
            TileTask(1, 0, 0),
            TileTask(1, 0, 1),
            TileTask(1, 1, 0),
            TileTask(1, 1, 1),
        ]

    def test_order_is_stable(self) -> None:
        assert build_tasks(3000, 1700, 4, 256, 1) == build_tasks(3000, 1700, 4, 256, 1)

    @pytest.mark.parametrize(
        "width, height, tile_size, max_mag",
        [
            (1000, 600, 256, 1),
            (171, 50, 256, 3),
            (3000, 1700, 256, 1),
            (5000, 1200, 512, 2),
            (1, 1, 256, 1),
            (777, 9999, 100, 3),
        ],
    )
    def test_task_list_properties(self, width, height, tile_size, max_mag) -> None:
        """Counts match the grids, triples are unique and the deepest level covers the image."""
        max_zoom = calculate_max_zoom(max_mag, tile_size, width, height)
        tasks = build_tasks(width, height, max_zoom, tile_size, max_mag)

        expected = 0
        for z in range(max_zoom + 1):
            cols, rows = grid_size(z, width, height, max_zoom, tile_size, max_mag)
            expected += cols * rows
        assert len(tasks) == expected
        assert len(set(tasks)) == len(tasks)

        deepest = coverage(max_zoom, max_zoom, tile_size, max_mag)
        cols, rows = grid_size(max_zoom, width, height, max_zoom, tile_size, max_mag)
        assert cols * deepest >= width
        assert rows * deepest >= height

        # Level 0 is a single tile
        assert [t for t in tasks if t.z == 0] == [TileTask(0, 0, 0)]

    def test_tiles_stay_inside_grid(self) -> None:
        width, height = 171, 50
        max_zoom = calculate_max_zoom(3, 256, width, height)
        for task in build_tasks(width, height, max_zoom, 256, 3):
            c = coverage(task.z, max_zoom, 256, 3)
            assert task.x < math.ceil(width / c)
            assert task.y < math.ceil(height / c)


class TestPlanAndLayout:
    """Tests for config-driven planning."""

    def test_plan_matches_build_tasks(self, landscape_config: PyramidConfig) -> None:
        assert plan(landscape_config) == build_tasks(1000, 600, 2, 256, 1)

    def test_config_derives_max_zoom(self, landscape_config: PyramidConfig) -> None:
        assert landscape_config.max_zoom == 2

    def test_config_rejects_invalid_dimensions(self) -> None:
        with pytest.raises(InvalidDimensionsError):
            PyramidConfig.from_image(0, 600)

    def test_level_layout(self, landscape_config: PyramidConfig) -> None:
        assert level_layout(landscape_config) == [
            LevelInfo(level=0, downsample=4, cols=1, rows=1, coverage=1024.0),
            LevelInfo(level=1, downsample=2, cols=2, rows=2, coverage=512.0),
            LevelInfo(level=2, downsample=1, cols=4, rows=3, coverage=256.0),
        ]

    def test_layout_tile_count_matches_plan(self, landscape_config: PyramidConfig) -> None:
        total = sum(info.tile_count for info in level_layout(landscape_config))
        assert total == len(plan(landscape_config))
