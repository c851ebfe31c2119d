"""CLI entry point for tilegen."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from tilegen import __version__
from tilegen.config import (
    DEFAULT_INPUT_PATH,
    DEFAULT_MAX_MAGNIFICATION,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TILE_FORMAT,
    DEFAULT_TILE_SIZE,
    DEFAULT_WORKERS,
    LOG_LEVEL,
    TILE_FORMATS,
    VIPS_CONCURRENCY,
)
from tilegen.core.errors import TilegenError
from tilegen.core.paths import prepare_output_dirs
from tilegen.core.types import PyramidConfig, TileTask

from .builder import configure
from .dispatcher import RunSummary, WorkerPool
from .planner import level_layout, plan
from .progress import RunProgress, format_duration, format_progress

logger = logging.getLogger(__name__)

#: Failed tiles listed in the summary before truncating
MAX_LISTED_FAILURES = 20


def _setup_logging(level: str) -> None:
    """Send log records to stderr so they stay clear of the progress bar."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _display_path(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


def _print_header(
    config: PyramidConfig, tasks: list[TileTask], dir_count: int, workers: int
) -> None:
    """Print the CLI banner with run parameters."""
    click.echo(click.style("tilegen", fg="cyan", bold=True))
    click.echo(click.style("=" * 40, fg="cyan"))
    click.echo(
        f"Image size: {click.style(f'{config.image_width}×{config.image_height}', bold=True)}"
    )
    click.echo(
        f"Tile size: {click.style(f'{config.tile_size}×{config.tile_size}', bold=True)}"
    )
    click.echo(f"Tile format: {click.style(config.tile_format.upper(), bold=True)}")
    click.echo(f"Computed max zoom level: {click.style(str(config.max_zoom), bold=True)}")
    for info in level_layout(config):
        logger.debug(
            "Level %d: %dx%d tiles, %.2f source px per tile",
            info.level, info.cols, info.rows, info.coverage,
        )
    click.echo(f"Created {click.style(str(dir_count), bold=True)} output directories.")
    click.echo(
        f"Spawning {click.style(str(workers), bold=True)} workers for "
        f"{click.style(str(len(tasks)), bold=True)} tiles."
    )
    click.echo()


def _run_pool(
    config: PyramidConfig,
    tasks: list[TileTask],
    workers: int,
    use_threads: bool,
    interactive: bool = True,
) -> RunSummary:
    """Run the worker pool with a progress display.

    On a terminal this is a tqdm bar, and log records are routed through
    tqdm so they print above the bar instead of through it. Otherwise a
    plain status line is echoed each time the percentage moves.
    """
    last_percent = -1

    with logging_redirect_tqdm(), tqdm(
        total=len(tasks), desc="Generating tiles", unit="tile", disable=not interactive
    ) as pbar:

        def on_progress(progress: RunProgress) -> None:
            nonlocal last_percent
            if interactive:
                pbar.update(1)
                pbar.set_postfix_str(
                    f"{round(progress.throughput)} tiles/s, eta {format_duration(progress.eta)}",
                    refresh=False,
                )
                return
            percent = int(progress.fraction * 100)
            if percent != last_percent:
                last_percent = percent
                click.echo(format_progress(progress))

        pool = WorkerPool(
            config,
            workers=workers,
            use_threads=use_threads,
            progress_callback=on_progress,
        )
        return pool.run(tasks)


def _print_summary(summary: RunSummary, allow_failures: bool) -> int:
    """Print the run summary and return the process exit code."""
    click.echo()
    elapsed = format_duration(summary.elapsed)

    if summary.success:
        click.echo(click.style(
            f"Success! Generated {summary.total} tiles in {elapsed}.", fg="green", bold=True
        ))
        return 0

    click.echo(click.style(
        f"Generated {summary.completed} of {summary.total} tiles in {elapsed}.", bold=True
    ))
    if summary.failures:
        click.echo(click.style(f"{summary.failed} tiles failed:", fg="red"))
        for task, reason in summary.failures[:MAX_LISTED_FAILURES]:
            click.echo(f"  {task}: {reason}")
        if summary.failed > MAX_LISTED_FAILURES:
            click.echo(f"  ... and {summary.failed - MAX_LISTED_FAILURES} more")
    if summary.crashed_workers:
        click.echo(click.style(
            f"{len(summary.crashed_workers)} workers crashed", fg="red"
        ))
    if summary.skipped:
        click.echo(click.style(f"{summary.skipped} tiles were never started", fg="red"))
        return 1

    if allow_failures:
        click.echo(click.style("Failures allowed by --allow-failures", fg="yellow"))
        return 0
    return 1


@click.command(name="tilegen")
@click.version_option(
    __version__, "-v", "--version", message="%(version)s",
    help="Display the version number.",
)
@click.option(
    "-t",
    "--tile-size",
    type=click.IntRange(min=1),
    default=DEFAULT_TILE_SIZE,
    help=f"The tile size of each image (default: {DEFAULT_TILE_SIZE})",
)
@click.option(
    "-f",
    "--tile-format",
    type=click.Choice(TILE_FORMATS, case_sensitive=False),
    default=DEFAULT_TILE_FORMAT,
    help=f"The tile format to use (default: {DEFAULT_TILE_FORMAT})",
)
@click.option(
    "-m",
    "--max-mag",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_MAGNIFICATION,
    help=f"The maximum magnification factor (default: {DEFAULT_MAX_MAGNIFICATION})",
)
@click.option(
    "-i",
    "--input",
    "input_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_INPUT_PATH,
    help="The path to the input image.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(file_okay=False),
    default=DEFAULT_OUTPUT_DIR,
    help="The output directory where the tiles will be saved.",
)
@click.option(
    "-w",
    "--workers",
    type=click.IntRange(min=1),
    default=DEFAULT_WORKERS,
    help=f"Number of parallel workers (default: {DEFAULT_WORKERS})",
)
@click.option(
    "--threads",
    is_flag=True,
    help="Run workers as threads instead of processes.",
)
@click.option(
    "--allow-failures",
    is_flag=True,
    help="Exit 0 even if some tiles failed to render.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=LOG_LEVEL if LOG_LEVEL in ("DEBUG", "INFO", "WARNING", "ERROR") else "WARNING",
    help="Log verbosity (logs go to stderr).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    tile_size: int,
    tile_format: str,
    max_mag: int,
    input_path: str,
    output: str,
    workers: int,
    threads: bool,
    allow_failures: bool,
    log_level: str,
) -> None:
    """Slice a large image into map-style tiles at multiple zoom levels.

    Tiles are written to OUTPUT/{z}/{x}/{y}.{format}. The whole pyramid is
    rebuilt on every run; existing directories are reused and tiles
    overwritten.

    Examples:

        # Default 256px PNG tiles
        tilegen -i map.png -o ./tiles/

        # WebP tiles, one extra level of zoom beyond 1:1
        tilegen -i map.png -o ./tiles/ -f webp -m 2
    """
    _setup_logging(log_level)

    source = Path(input_path).resolve()
    output_dir = Path(output).resolve()

    click.echo(f"Reading image metadata from {click.style(_display_path(source), bold=True)}...")
    try:
        config = configure(source, output_dir, tile_size, max_mag, tile_format)
        tasks = plan(config)
        dir_count = prepare_output_dirs(config.output_dir, tasks)
    except (TilegenError, RuntimeError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        ctx.exit(1)

    _print_header(config, tasks, dir_count, workers)

    # libvips reads this when a worker process initialises it
    os.environ["VIPS_CONCURRENCY"] = VIPS_CONCURRENCY

    try:
        summary = _run_pool(config, tasks, workers, threads, interactive=sys.stderr.isatty())
    except KeyboardInterrupt:
        click.echo(click.style("\nInterrupted", fg="yellow"), err=True)
        ctx.exit(1)

    ctx.exit(_print_summary(summary, allow_failures))


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return its exit code.

    Usage errors exit with 1 (click's own default is 2).
    """
    try:
        rv = cli.main(args=argv, prog_name="tilegen", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return rv if isinstance(rv, int) else 0


if __name__ == "__main__":
    sys.exit(main())
