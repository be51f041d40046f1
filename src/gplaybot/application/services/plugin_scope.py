"""Cancellation scope for the background work a plugin instance owns."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScopeClosedError(RuntimeError):
    """Work was submitted after the scope was closed."""


class PluginScope:
    """Runs coroutines as tasks owned by one plugin instance.

    Hey future me - every long-running call of a plugin goes through run(), so close()
    can cancel ALL of it in one go. The caller awaits the task; if close() cancels it,
    the caller sees CancelledError. Work owned by longer-lived objects (the song cache's
    in-flight fetches) must NOT go through here.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    async def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run coro as an owned task and wait for its result."""
        if self._closed:
            coro.close()
            raise ScopeClosedError(f"{self.name} is closed")
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return await task

    async def close(self) -> None:
        """Cancel all owned tasks and wait until they are gone."""
        self._closed = True
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            # return_exceptions: outcomes belong to the callers awaiting these tasks
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("%s: cancelled %d outstanding task(s)", self.name, len(tasks))
