"""Exception hierarchy for tilegen.

Startup failures (bad image, bad dimensions, unwritable output) abort the run
before any tile is produced. Per-tile failures never raise past the worker;
they are reported as ``Failed`` outcomes instead.
"""

from __future__ import annotations


class TilegenError(Exception):
    """Base exception for tilegen failures.

    Attributes:
        message: Human-readable error description
        details: Additional context about the failure
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class InvalidDimensionsError(TilegenError, ValueError):
    """Image dimensions or tiling parameters are not positive."""

    def __init__(self, width: int, height: int, tile_size: int, max_magnification: int):
        super().__init__(
            "Invalid image dimensions",
            {
                "width": width,
                "height": height,
                "tile_size": tile_size,
                "max_magnification": max_magnification,
            },
        )


class InvalidImageError(TilegenError):
    """The source image could not be read or reports zero dimensions."""

    def __init__(self, path, reason: str):
        super().__init__(f"Cannot read image {path}", {"reason": reason})
        self.path = path


class OutputDirectoryError(TilegenError):
    """The output tree could not be created."""

    def __init__(self, path, reason: str):
        super().__init__(f"Cannot create output directory {path}", {"reason": reason})
        self.path = path


class UnknownOutcomeError(TilegenError):
    """A worker sent a message that is not a known dispatch outcome."""

    def __init__(self, message_obj: object):
        super().__init__(
            "Unknown worker message", {"type": type(message_obj).__name__}
        )
