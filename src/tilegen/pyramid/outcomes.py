"""Messages exchanged between the dispatcher and its workers.

control -> worker: a :class:`TileTask` or :data:`SHUTDOWN`
worker -> control: :class:`Completed`, :class:`Failed` or :class:`Terminated`

All messages are small frozen dataclasses so they pickle across process
boundaries. Compare with ``isinstance``, never identity: a message that
crossed a process boundary is a copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from tilegen.core.types import TileTask


@dataclass(frozen=True)
class Shutdown:
    """Tells an idle worker there is no more work."""


SHUTDOWN = Shutdown()


@dataclass(frozen=True)
class Completed:
    """A tile was rendered and written."""

    worker_id: int
    task: TileTask


@dataclass(frozen=True)
class Failed:
    """A tile could not be produced. The worker stays alive."""

    worker_id: int
    task: TileTask
    reason: str


@dataclass(frozen=True)
class Terminated:
    """A worker acknowledged shutdown and is exiting."""

    worker_id: int


DispatchOutcome = Union[Completed, Failed, Terminated]
