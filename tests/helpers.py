"""Instrumented renderers for driving workers without real images."""

from __future__ import annotations

import threading
import time

import pytest

from tilegen.core.types import PyramidConfig
from tilegen.pyramid.backends import TileRenderer, is_vips_available

requires_vips = pytest.mark.skipif(
    not is_vips_available(), reason="pyvips/libvips not available"
)


class RecordingRenderer(TileRenderer):
    """Renderer that records every call and produces placeholder bytes."""

    def __init__(self, config: PyramidConfig, calls: list | None = None,
                 lock: threading.Lock | None = None) -> None:
        super().__init__(config)
        self.calls = calls if calls is not None else []
        self._lock = lock or threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def extract_region(self, left, top, width, height):
        self._record("extract", left, top, width, height)
        return ("region", width, height)

    def resample(self, region, width, height):
        self._record("resample", width, height)
        return ("region", width, height)

    def composite_on_canvas(self, region, left, top):
        self._record("composite", left, top)
        return ("tile", left, top)

    def new_canvas(self):
        return ("canvas",)

    def encode(self, tile):
        if tile == ("canvas",):
            return b"BLANK"
        return b"TILE"


class FailingRenderer(RecordingRenderer):
    """Fails every tile whose source window starts at the image origin."""

    def extract_region(self, left, top, width, height):
        if left == 0 and top == 0:
            raise RuntimeError("decode error")
        return super().extract_region(left, top, width, height)


class SlowRenderer(RecordingRenderer):
    """Holds every tile for a moment so other workers finish first."""

    delay = 0.3

    def extract_region(self, left, top, width, height):
        time.sleep(self.delay)
        return super().extract_region(left, top, width, height)


class CrashingRenderer(RecordingRenderer):
    """Kills its worker thread outright on the first tile."""

    def extract_region(self, left, top, width, height):
        # SystemExit bypasses the worker's per-tile error handling
        raise SystemExit(3)


def broken_factory(config: PyramidConfig) -> TileRenderer:
    raise OSError("cannot open input")
