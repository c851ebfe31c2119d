"""Throughput and ETA accounting for a pyramid run.

Purely observational: the tracker reads completion events and never
influences scheduling.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RunProgress:
    """Snapshot of a run after one completion event.

    Attributes:
        completed: Tiles written successfully
        failed: Tiles that ended in a failure
        total: Tiles in the run
        elapsed: Seconds since the run started
        throughput: Finished tiles per second
        eta: Estimated seconds remaining (0 when throughput is unknown)
    """

    completed: int
    failed: int
    total: int
    elapsed: float
    throughput: float
    eta: float

    @property
    def done(self) -> int:
        return self.completed + self.failed

    @property
    def fraction(self) -> float:
        return self.done / self.total if self.total else 1.0


class ProgressTracker:
    """Derives throughput and ETA from completion events.

    Failed tiles count as finished work: they are not retried, so they use up
    the same slot in the run as a completed one.

    Args:
        total: Number of tiles in the run
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, total: int, clock: Callable[[], float] = time.monotonic) -> None:
        self.total = total
        self._clock = clock
        self.start_time = clock()
        self.completed = 0
        self.failed = 0

    def record(self, failed: bool = False) -> RunProgress:
        """Record one finished tile and return the updated snapshot."""
        if self.completed + self.failed >= self.total:
            raise ValueError("More completion events than tiles in the run")
        if failed:
            self.failed += 1
        else:
            self.completed += 1
        return self.snapshot()

    def elapsed(self) -> float:
        return max(0.0, self._clock() - self.start_time)

    def snapshot(self) -> RunProgress:
        elapsed = self.elapsed()
        done = self.completed + self.failed
        throughput = done / elapsed if elapsed > 0 else 0.0
        eta = (self.total - done) / throughput if throughput > 0 else 0.0
        return RunProgress(
            completed=self.completed,
            failed=self.failed,
            total=self.total,
            elapsed=elapsed,
            throughput=throughput,
            eta=eta,
        )


def render_progress_bar(completed: int, total: int, width: int = 40) -> str:
    """Render a text progress bar, e.g. ``████░░░░  50% (2/4)``."""
    ratio = completed / total if total else 1.0
    filled = int(ratio * width)
    percent = int(ratio * 100)
    bar = "█" * filled + "░" * (width - filled)
    return f"{bar} {percent:>3}% ({completed}/{total})"


def format_duration(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS``."""
    seconds = max(0, int(seconds))
    hrs, rem = divmod(seconds, 3600)
    mins, secs = divmod(rem, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


def format_progress(progress: RunProgress) -> str:
    """One-line status: bar, tiles/s, elapsed and ETA."""
    return (
        f"{render_progress_bar(progress.done, progress.total)}, "
        f"{round(progress.throughput)} tiles/s, "
        f"elapsed: {format_duration(progress.elapsed)}, "
        f"eta: {format_duration(progress.eta)}"
    )
