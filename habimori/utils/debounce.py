"""Per-key debounced task table."""
import asyncio
import logging
from typing import Awaitable, Callable, Hashable

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Run at most one delayed job per key, restarting the delay on each call.

    Scheduling a key that already has a pending job cancels that job and
    starts a new delay, so a burst of calls ends in a single run.
    """

    def __init__(self, delay_seconds: float, name: str = "debounce"):
        self.delay_seconds = delay_seconds
        self.name = name
        self._tasks: dict[Hashable, asyncio.Task] = {}
        # Jobs past their delay; no longer cancellable, awaited on shutdown
        self._running: set[asyncio.Task] = set()

    def schedule(self, key: Hashable, job: Callable[[], Awaitable[object]]) -> None:
        """Cancel any pending job for ``key`` and schedule ``job``."""
        self.cancel(key)
        self._tasks[key] = asyncio.create_task(self._run(key, job))

    async def _run(self, key: Hashable, job: Callable[[], Awaitable[object]]) -> None:
        await asyncio.sleep(self.delay_seconds)

        # Past the delay the job owns its key; a reschedule starts fresh.
        task = asyncio.current_task()
        if self._tasks.get(key) is task:
            del self._tasks[key]
        self._running.add(task)
        try:
            await job()
        except Exception:
            logger.exception("%s job for %s failed", self.name, key)
        finally:
            self._running.discard(task)

    def cancel(self, key: Hashable) -> bool:
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def is_pending(self, key: Hashable) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def is_running(self) -> bool:
        return bool(self._running)

    def pending_keys(self) -> list[Hashable]:
        return [key for key in self._tasks if self.is_pending(key)]

    async def shutdown(self) -> None:
        """Cancel every pending job and wait for the running ones to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        running = list(self._running)
        if tasks or running:
            await asyncio.gather(*tasks, *running, return_exceptions=True)
