"""Timer tasks driving metrics sampling and step progression."""

import asyncio
import logging
from typing import Callable, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        # No running loop
        return None


class SamplingScheduler:
    """
    Two independent periodic tasks on the running event loop.

    The metrics task calls ``on_tick`` every ``metrics_interval`` seconds for
    as long as the scheduler is open. The step task exists only while a run is
    active; it calls ``on_step(version)`` every ``step_interval`` seconds and
    stops as soon as that returns False.
    """

    def __init__(
        self,
        on_tick: Callable[[], object],
        on_step: Callable[[int], bool],
        metrics_interval: float = 1.0,
        step_interval: float = 1.5,
    ):
        self._on_tick = on_tick
        self._on_step = on_step
        self.metrics_interval = metrics_interval
        self.step_interval = step_interval
        self._metrics_task: Optional[asyncio.Task] = None
        self._step_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._metrics_task is not None and not self._metrics_task.done()

    @property
    def step_pending(self) -> bool:
        return self._step_task is not None and not self._step_task.done()

    def open(self) -> None:
        """Start the metrics task. Must be called with a running loop."""
        if self.running:
            return
        self._metrics_task = asyncio.get_running_loop().create_task(
            self._metrics_loop()
        )

    def reschedule(self, version: int, active: bool) -> None:
        """Drop any pending step timer and start a fresh one if active."""
        if self._step_task is not None:
            # The step task itself may trigger this on completion
            if self._step_task is not _current_task():
                self._step_task.cancel()
            self._step_task = None
        if active and self.running:
            self._step_task = asyncio.get_running_loop().create_task(
                self._step_loop(version)
            )

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run coro in the background; cancelled on close."""
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def close(self) -> None:
        """Cancel every task owned by the scheduler and wait for them."""
        tasks = [t for t in (self._metrics_task, self._step_task) if t is not None]
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._metrics_task = None
        self._step_task = None
        self._background.clear()

    async def _metrics_loop(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += self.metrics_interval
            now = loop.time()
            if deadline < now - self.metrics_interval:
                # Loop stalled; skip the missed ticks instead of bursting
                logger.debug("Metrics tick behind by %.3fs", now - deadline)
                deadline = now
            await asyncio.sleep(max(0.0, deadline - now))
            self._on_tick()

    async def _step_loop(self, version: int) -> None:
        while True:
            await asyncio.sleep(self.step_interval)
            if not self._on_step(version):
                return
