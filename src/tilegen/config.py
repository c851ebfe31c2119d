"""Centralized configuration for tilegen.

All tunable defaults are defined here. Values can be overridden via
environment variables. These are only defaults for the CLI; a run itself is
driven by the immutable :class:`tilegen.core.types.PyramidConfig`.

Environment Variables:
    TILEGEN_TILE_SIZE: Default tile edge in pixels (default: 256)
    TILEGEN_MAX_MAGNIFICATION: Default maximum magnification (default: 1)
    TILEGEN_TILE_FORMAT: Default tile format (default: png)
    TILEGEN_WORKERS: Worker pool size (default: CPU count)
    TILEGEN_VIPS_CONCURRENCY: VIPS internal thread count per worker (default: 1)
    TILEGEN_LOG_LEVEL: Log level for the CLI (default: WARNING)
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    """Get an integer from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer for %s: %r, using default %d", name, value, default
            )
    return default


def _get_env_str(name: str, default: str) -> str:
    """Get a string from environment variable with fallback."""
    return os.environ.get(name, default)


# =============================================================================
# Tile Generation Defaults
# =============================================================================

#: Default tile size in pixels (the common Leaflet tile size)
DEFAULT_TILE_SIZE: int = _get_env_int("TILEGEN_TILE_SIZE", 256)

#: Default maximum magnification; each +1 lets the deepest level zoom further
DEFAULT_MAX_MAGNIFICATION: int = _get_env_int("TILEGEN_MAX_MAGNIFICATION", 1)

#: Supported tile formats (also used as file extensions)
TILE_FORMATS: tuple[str, ...] = ("png", "jpg", "webp", "avif")

#: Default tile format
DEFAULT_TILE_FORMAT: str = _get_env_str("TILEGEN_TILE_FORMAT", "png").lower()

#: JPEG quality for jpg tiles
JPEG_QUALITY: int = 80

#: Default source image path
DEFAULT_INPUT_PATH: str = "./input.png"

#: Default output directory
DEFAULT_OUTPUT_DIR: str = "./out/"


# =============================================================================
# Worker Pool Configuration
# =============================================================================

#: Number of workers in the pool (one per available CPU)
DEFAULT_WORKERS: int = _get_env_int("TILEGEN_WORKERS", os.cpu_count() or 1)

#: multiprocessing start method for worker processes
WORKER_START_METHOD: str = "spawn"

#: VIPS internal concurrency per worker (the pool already provides parallelism)
VIPS_CONCURRENCY: str = _get_env_str("TILEGEN_VIPS_CONCURRENCY", "1")

#: How long the control loop waits for an outcome before checking worker liveness
RESULT_POLL_SECONDS: float = 0.5

#: Seconds to wait for a worker to exit after it acknowledged shutdown
WORKER_JOIN_TIMEOUT: float = 5.0


# =============================================================================
# Logging
# =============================================================================

#: Log level for the CLI
LOG_LEVEL: str = _get_env_str("TILEGEN_LOG_LEVEL", "WARNING").upper()


# =============================================================================
# Validation
# =============================================================================


def _validate_config() -> None:
    """Validate configuration values and log warnings for out-of-range settings."""
    global DEFAULT_TILE_SIZE, DEFAULT_MAX_MAGNIFICATION, DEFAULT_WORKERS
    global DEFAULT_TILE_FORMAT

    if DEFAULT_TILE_SIZE < 1:
        logger.warning(
            "DEFAULT_TILE_SIZE=%d is too low, using 256", DEFAULT_TILE_SIZE
        )
        DEFAULT_TILE_SIZE = 256

    if DEFAULT_MAX_MAGNIFICATION < 1:
        logger.warning(
            "DEFAULT_MAX_MAGNIFICATION=%d is too low, clamping to 1",
            DEFAULT_MAX_MAGNIFICATION,
        )
        DEFAULT_MAX_MAGNIFICATION = 1

    if DEFAULT_WORKERS < 1:
        logger.warning("DEFAULT_WORKERS=%d is too low, clamping to 1", DEFAULT_WORKERS)
        DEFAULT_WORKERS = 1

    if DEFAULT_TILE_FORMAT not in TILE_FORMATS:
        logger.warning(
            "Unsupported TILEGEN_TILE_FORMAT %r, using png", DEFAULT_TILE_FORMAT
        )
        DEFAULT_TILE_FORMAT = "png"


_validate_config()
