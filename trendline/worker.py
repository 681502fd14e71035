"""Background execution of orchestration passes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class WorkerPool:
    """Runs coroutines as tasks outside the caller's request cycle.

    Every task runs inside an error boundary: exceptions are logged, never
    propagated to whoever submitted the work. ``max_concurrency`` bounds how
    many tasks execute at once; further submissions wait for a slot.
    """

    def __init__(self, max_concurrency: Optional[int] = None) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Schedule ``coro`` and return its task."""
        task = asyncio.create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Coroutine[Any, Any, Any], name: Optional[str]) -> Any:
        try:
            if self._semaphore is None:
                return await coro
            async with self._semaphore:
                return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Background task {name or ''} failed")
            return None

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding tasks, cancelling any still running after ``timeout``."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} background task(s)")
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            logger.warning(f"Cancelling background task {task.get_name()}")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
