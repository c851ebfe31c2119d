"""Tests for the tile tree layout."""

from __future__ import annotations

from pathlib import Path

import pytest

from tilegen.core.errors import OutputDirectoryError
from tilegen.core.paths import atomic_write_bytes, prepare_output_dirs, tile_path, tile_path_for
from tilegen.core.types import PyramidConfig, TileTask
from tilegen.pyramid.planner import plan


class TestTilePath:
    def test_layout(self, temp_dir: Path) -> None:
        assert tile_path(temp_dir, TileTask(3, 5, 7), "png") == temp_dir / "3" / "5" / "7.png"

    def test_from_config(self, landscape_config: PyramidConfig) -> None:
        path = tile_path_for(landscape_config, TileTask(2, 3, 1))
        assert path == landscape_config.output_dir / "2" / "3" / "1.png"


class TestPrepareOutputDirs:
    def test_creates_one_directory_per_column(self, landscape_config: PyramidConfig) -> None:
        tasks = plan(landscape_config)
        count = prepare_output_dirs(landscape_config.output_dir, tasks)

        # z0: 1 column, z1: 2 columns, z2: 4 columns
        assert count == 7
        for task in tasks:
            assert tile_path_for(landscape_config, task).parent.is_dir()

    def test_rerun_leaves_existing_directories(self, landscape_config: PyramidConfig) -> None:
        tasks = plan(landscape_config)
        out = landscape_config.output_dir
        prepare_output_dirs(out, tasks)
        marker = out / "2" / "3" / "keep.txt"
        marker.write_text("existing")
        before = sorted(p for p in out.rglob("*") if p.is_dir())

        assert prepare_output_dirs(out, tasks) == 7

        assert marker.read_text() == "existing"
        assert sorted(p for p in out.rglob("*") if p.is_dir()) == before

    def test_unwritable_root(self, temp_dir: Path) -> None:
        blocker = temp_dir / "not_a_dir"
        blocker.write_text("file")
        with pytest.raises(OutputDirectoryError):
            prepare_output_dirs(blocker, [TileTask(0, 0, 0)])


class TestAtomicWrite:
    def test_writes_and_replaces(self, temp_dir: Path) -> None:
        path = temp_dir / "0.png"
        atomic_write_bytes(path, b"first")
        atomic_write_bytes(path, b"second")

        assert path.read_bytes() == b"second"
        assert [p.name for p in temp_dir.iterdir()] == ["0.png"]

    def test_missing_directory_raises(self, temp_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            atomic_write_bytes(temp_dir / "missing" / "0.png", b"data")
