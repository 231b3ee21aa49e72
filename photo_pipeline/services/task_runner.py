"""
Background execution for long-running jobs.

Triggers hand their coroutine to the runner and return right away; the
runner keeps a reference to each task until it finishes and logs how it
ended.
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class AsyncTaskRunner:
    """Spawns detached asyncio tasks on the running loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str = "background task") -> asyncio.Task:
        """
        Schedule a coroutine without waiting for it.

        Must be called from inside a running event loop.

        Args:
            coro: Coroutine to run
            description: Label for log lines

        Returns:
            The created task
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        logger.info(f"[TASK] Started {description}")

        def _done(t: asyncio.Task):
            self._tasks.discard(t)
            if t.cancelled():
                logger.warning(f"[TASK] {description} was cancelled")
                return
            exc = t.exception()
            if exc is not None:
                logger.error(f"[TASK] {description} failed: {exc}", exc_info=exc)
            else:
                logger.info(f"[TASK] Finished {description}")

        task.add_done_callback(_done)
        return task

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for outstanding tasks.

        Returns:
            True if everything finished, False if the timeout hit first
        """
        if not self._tasks:
            return True
        done, not_done = await asyncio.wait(set(self._tasks), timeout=timeout)
        if not_done:
            logger.warning(f"[TASK] {len(not_done)} tasks still running after {timeout}s")
        return not not_done
