"""Fire-and-forget task tracking.

``asyncio`` only keeps weak references to tasks, so detached work must be held
somewhere until it finishes. :class:`DetachedTasks` keeps those references,
logs failures instead of letting them vanish, and can be drained at shutdown
so pending writes are not dropped when the event loop closes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Set

logger = logging.getLogger(__name__)


class DetachedTasks:
    """Owns background tasks spawned off the hot path."""

    def __init__(self, name: str = "detached") -> None:
        self._name = name
        self._tasks: Set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, description: str = "") -> asyncio.Task[Any]:
        """Schedule ``coro`` without awaiting it."""

        task = asyncio.create_task(coro)
        self._tasks.add(task)

        def _finished(done: asyncio.Task[Any]) -> None:
            self._tasks.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                logger.warning(
                    "Detached task failed (%s): %s",
                    description or self._name,
                    exc,
                    exc_info=exc,
                )

        task.add_done_callback(_finished)
        return task

    async def drain(self) -> None:
        """Wait for every pending task, including ones spawned while draining."""

        while self._tasks:
            pending = list(self._tasks)
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                self._tasks.discard(task)

    async def cancel(self) -> int:
        """Cancel every pending task and wait for them to unwind; returns how many."""

        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Cancelling %s pending %s task(s)", len(pending), self._name)
            await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.difference_update(pending)
        return len(pending)


__all__ = ["DetachedTasks"]
