"""
Cooperative Step Scheduler
==========================

Slices long linear passes into bounded chunks on a single thread.

Work is never run from inside `defer`; the host drives the queue with
`run_pending` (e.g. once per frame) or drains it with `run_until_idle`.
A chunk only starts after the previous one has returned.
"""

import logging
from collections import deque
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)


class CooperativeScheduler:
    """FIFO of deferred callbacks run in submission order."""

    def __init__(self):
        self._pending: Deque[Callable[[], None]] = deque()

    @property
    def idle(self) -> bool:
        return not self._pending

    def defer(self, callback: Callable[[], None]) -> None:
        """Queue `callback` to run after everything already queued."""
        self._pending.append(callback)

    def run_pending(self, max_steps: Optional[int] = None) -> int:
        """
        Run queued callbacks, including ones queued while running.

        Args:
            max_steps: Stop after this many callbacks (None = until idle)

        Returns:
            Number of callbacks run
        """
        steps = 0
        while self._pending and (max_steps is None or steps < max_steps):
            callback = self._pending.popleft()
            callback()
            steps += 1
        return steps

    def run_until_idle(self) -> int:
        return self.run_pending()

    def run_chunked(self, total: int, chunk_size: int,
                    per_item: Callable[[int], None],
                    on_done: Callable[[], None]) -> None:
        """
        Call `per_item(i)` for i in range(total), `chunk_size` items per step.

        `on_done` runs in the same step as the last chunk.
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        def run_chunk(start: int):
            end = min(start + chunk_size, total)
            for i in range(start, end):
                per_item(i)
            if end < total:
                self.defer(lambda: run_chunk(end))
            else:
                on_done()

        self.defer(lambda: run_chunk(0))

    def run_bounded_loop(self, max_iterations: int,
                         step: Callable[[int, Callable[[], None]], None],
                         on_complete: Callable[[], None],
                         should_stop_early: Optional[Callable[[], bool]] = None) -> None:
        """
        Run `step(i, resume)` for up to `max_iterations` iterations.

        Each step calls `resume()` when its work is committed, which
        schedules the next iteration. `on_complete` runs once the bound is
        reached or `should_stop_early()` returns True before an iteration.
        A step that never calls `resume` ends the loop without completion.
        """
        def run_iteration(i: int):
            if i >= max_iterations or (should_stop_early is not None and should_stop_early()):
                logger.debug("Bounded loop finished after %d iterations", i)
                on_complete()
                return
            step(i, lambda: self.defer(lambda: run_iteration(i + 1)))

        self.defer(lambda: run_iteration(0))
