"""Worker pool and task dispatcher.

The pool owns ``P`` workers and the full task list. A single control loop
(:meth:`WorkerPool.run`) owns every piece of shared state: the next task
index, the completed/failed counters and the number of active workers.
Workers only ever see their own inbox; they answer on a shared outbox.

Per worker::

    Idle --task--> Busy --Completed/Failed--> Idle
    Idle --SHUTDOWN--> ShuttingDown --Terminated--> gone

A task index is advanced only by the control loop, at dispatch, so every
task is sent to exactly one worker exactly once.
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from tilegen.config import (
    DEFAULT_WORKERS,
    RESULT_POLL_SECONDS,
    WORKER_JOIN_TIMEOUT,
    WORKER_START_METHOD,
)
from tilegen.core.errors import UnknownOutcomeError
from tilegen.core.types import PyramidConfig, TileTask

from .backends import VipsTileRenderer
from .outcomes import SHUTDOWN, Completed, Failed, Terminated
from .progress import ProgressTracker, RunProgress
from .worker import RendererFactory, process_entry, worker_main

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Result of a pyramid run.

    Attributes:
        total: Tiles planned
        completed: Tiles written
        failed: Tiles that failed (including tiles lost with a crashed worker)
        skipped: Tiles never dispatched (cancelled run or no workers left)
        elapsed: Wall-clock seconds
        failures: (task, reason) for every failed tile
        dispatched: (worker_id, task_index) in dispatch order
        crashed_workers: Workers that exited without acknowledging shutdown
    """

    total: int
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    elapsed: float = 0.0
    failures: list[tuple[TileTask, str]] = field(default_factory=list)
    dispatched: list[tuple[int, int]] = field(default_factory=list)
    crashed_workers: list[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if every planned tile was written."""
        return self.completed == self.total


@dataclass
class _WorkerHandle:
    worker_id: int
    inbox: Any
    runner: Any  # multiprocessing.Process or threading.Thread
    in_flight: tuple[int, TileTask] | None = None
    shutdown_sent: bool = False
    finished: bool = False


@dataclass
class _DispatchState:
    tasks: Sequence[TileTask]
    task_index: int = 0
    active: int = 0


class WorkerPool:
    """Fixed pool of tile workers driven by one control loop.

    Args:
        config: Run configuration, shared read-only with every worker
        renderer_factory: Builds each worker's image processing capability.
            Must be picklable (a top-level class or function) for process workers.
        workers: Pool size, normally the CPU count
        use_threads: Run workers as threads instead of processes
        progress_callback: Optional callback(RunProgress) after every finished tile
        cancel_event: Once set, idle workers are shut down instead of given work
        poll_interval: Seconds to wait for an outcome before checking for
            crashed workers
    """

    def __init__(
        self,
        config: PyramidConfig,
        renderer_factory: RendererFactory = VipsTileRenderer,
        workers: int = DEFAULT_WORKERS,
        use_threads: bool = False,
        progress_callback: Callable[[RunProgress], None] | None = None,
        cancel_event: threading.Event | None = None,
        poll_interval: float = RESULT_POLL_SECONDS,
    ) -> None:
        if workers < 1:
            raise ValueError(f"Worker pool needs at least one worker, got {workers}")
        self.config = config
        self.renderer_factory = renderer_factory
        self.workers = workers
        self.use_threads = use_threads
        self.progress_callback = progress_callback
        self.cancel_event = cancel_event
        self.poll_interval = poll_interval

    def run(self, tasks: Sequence[TileTask]) -> RunSummary:
        """Render every task and return once all workers have terminated.

        Args:
            tasks: Planned tile tasks, each dispatched exactly once

        Returns:
            RunSummary with counts, failures and the dispatch log
        """
        tasks = list(tasks)
        summary = RunSummary(total=len(tasks))
        tracker = ProgressTracker(len(tasks))
        state = _DispatchState(tasks=tasks, active=self.workers)

        outbox, handles = self._start_workers()
        try:
            for handle in handles.values():
                self._dispatch(handle, state, summary)

            while state.active > 0:
                try:
                    message = outbox.get(timeout=self.poll_interval)
                except queue.Empty:
                    self._reap_crashed(outbox, handles, state, tracker, summary)
                    continue
                self._handle_outcome(message, handles, state, tracker, summary)
        finally:
            self._stop_workers(handles)

        summary.skipped = len(tasks) - state.task_index
        summary.elapsed = tracker.elapsed()
        logger.info(
            "Run finished: %d completed, %d failed, %d skipped in %.1fs",
            summary.completed, summary.failed, summary.skipped, summary.elapsed,
        )
        return summary

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def _dispatch(
        self, handle: _WorkerHandle, state: _DispatchState, summary: RunSummary
    ) -> None:
        """Send the next task to an idle worker, or SHUTDOWN if none remain."""
        cancelled = self.cancel_event is not None and self.cancel_event.is_set()
        if state.task_index < len(state.tasks) and not cancelled:
            index = state.task_index
            task = state.tasks[index]
            state.task_index += 1
            handle.in_flight = (index, task)
            summary.dispatched.append((handle.worker_id, index))
            handle.inbox.put(task)
        else:
            handle.in_flight = None
            handle.shutdown_sent = True
            handle.inbox.put(SHUTDOWN)

    def _handle_outcome(
        self,
        message: object,
        handles: dict[int, _WorkerHandle],
        state: _DispatchState,
        tracker: ProgressTracker,
        summary: RunSummary,
    ) -> None:
        if isinstance(message, Completed):
            handle = handles[message.worker_id]
            handle.in_flight = None
            summary.completed += 1
            self._report(tracker.record())
            self._dispatch(handle, state, summary)
        elif isinstance(message, Failed):
            handle = handles[message.worker_id]
            handle.in_flight = None
            summary.failed += 1
            summary.failures.append((message.task, message.reason))
            logger.error("Tile %s failed: %s", message.task, message.reason)
            self._report(tracker.record(failed=True))
            self._dispatch(handle, state, summary)
        elif isinstance(message, Terminated):
            handle = handles[message.worker_id]
            if handle.finished:
                # Already retired as crashed; its acknowledgement arrived late
                logger.debug("Late termination from worker %d ignored", message.worker_id)
                return
            handle.finished = True
            state.active -= 1
            logger.debug("Worker %d terminated (%d active)", message.worker_id, state.active)
        else:
            raise UnknownOutcomeError(message)

    def _reap_crashed(
        self,
        outbox: Any,
        handles: dict[int, _WorkerHandle],
        state: _DispatchState,
        tracker: ProgressTracker,
        summary: RunSummary,
    ) -> None:
        """Retire workers that died without acknowledging shutdown.

        A worker can post its last outcome and exit between a poll timeout and
        this check, so the outbox is drained first. Only a worker that is dead
        and still unfinished after that counts as crashed. The task it held is
        recorded as failed and its share of the pool is not replaced.
        """
        while True:
            try:
                message = outbox.get_nowait()
            except queue.Empty:
                break
            self._handle_outcome(message, handles, state, tracker, summary)

        for handle in handles.values():
            if handle.finished or handle.runner.is_alive():
                continue
            handle.finished = True
            state.active -= 1
            summary.crashed_workers.append(handle.worker_id)
            exitcode = getattr(handle.runner, "exitcode", None)
            logger.error("Worker %d exited unexpectedly (exit code %s)", handle.worker_id, exitcode)
            if handle.in_flight is not None:
                _index, task = handle.in_flight
                handle.in_flight = None
                reason = f"worker crashed (exit code {exitcode})"
                summary.failed += 1
                summary.failures.append((task, reason))
                logger.error("Tile %s failed: %s", task, reason)
                self._report(tracker.record(failed=True))

    def _report(self, progress: RunProgress) -> None:
        if self.progress_callback is not None:
            self.progress_callback(progress)

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    def _start_workers(self) -> tuple[Any, dict[int, _WorkerHandle]]:
        """Start the pool.

        Processes use the ``spawn`` start method: forking a parent that already
        runs libvips threads is unsafe.
        """
        handles: dict[int, _WorkerHandle] = {}
        if self.use_threads:
            outbox: Any = queue.Queue()
            for worker_id in range(self.workers):
                inbox: Any = queue.Queue()
                runner: Any = threading.Thread(
                    target=worker_main,
                    args=(worker_id, self.config, self.renderer_factory, inbox, outbox),
                    name=f"tilegen-worker-{worker_id}",
                    daemon=True,
                )
                runner.start()
                handles[worker_id] = _WorkerHandle(worker_id, inbox, runner)
        else:
            ctx = multiprocessing.get_context(WORKER_START_METHOD)
            outbox = ctx.Queue()
            for worker_id in range(self.workers):
                inbox = ctx.Queue()
                runner = ctx.Process(
                    target=process_entry,
                    args=(worker_id, self.config, self.renderer_factory, inbox, outbox),
                    name=f"tilegen-worker-{worker_id}",
                    daemon=True,
                )
                runner.start()
                handles[worker_id] = _WorkerHandle(worker_id, inbox, runner)

        logger.debug(
            "Started %d %s workers", self.workers, "thread" if self.use_threads else "process"
        )
        return outbox, handles

    def _stop_workers(self, handles: dict[int, _WorkerHandle]) -> None:
        """Join every worker; terminate processes that do not exit in time."""
        for handle in handles.values():
            if not handle.finished and not handle.shutdown_sent:
                handle.inbox.put(SHUTDOWN)
                handle.shutdown_sent = True
        for handle in handles.values():
            handle.runner.join(timeout=WORKER_JOIN_TIMEOUT)
            if handle.runner.is_alive():
                if isinstance(handle.runner, threading.Thread):
                    logger.warning("Worker %d thread did not exit", handle.worker_id)
                else:
                    logger.warning("Terminating worker %d", handle.worker_id)
                    handle.runner.terminate()
                    handle.runner.join()
