"""
Keyed background task lifecycle.

The catalog watcher runs one long-lived task per service name. Tasks are
registered under their key so a removed service can be cancelled without
touching its siblings, and shutdown cancels whatever is left.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger


class KeyedTaskManager:
    """Tracks at most one background task per key."""

    def __init__(self, name: str = "KeyedTaskManager") -> None:
        self.name = name
        self.tasks: dict[str, asyncio.Task[Any]] = {}
        self._shutdown_requested = False

    def start(self, key: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Start and register a task; an existing live task for key is kept."""
        if self._shutdown_requested:
            coro.close()
            raise RuntimeError("Cannot start tasks after shutdown requested")

        existing = self.tasks.get(key)
        if existing is not None and not existing.done():
            coro.close()
            return existing

        task = asyncio.create_task(coro, name=f"{self.name}:{key}")
        self.tasks[key] = task
        task.add_done_callback(lambda done, key=key: self._task_completed(key, done))
        logger.debug("[{}] Started task for {}", self.name, key)
        return task

    def _task_completed(self, key: str, task: asyncio.Task[Any]) -> None:
        if self.tasks.get(key) is task:
            del self.tasks[key]
        if task.cancelled():
            logger.debug("[{}] Task for {} was cancelled", self.name, key)
        elif task.exception() is not None:
            logger.error(
                "[{}] Task for {} failed: {}", self.name, key, task.exception()
            )

    async def cancel(self, key: str) -> bool:
        """Cancel the task for key and wait until it has stopped."""
        task = self.tasks.pop(key, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.debug("[{}] Cancelled task for {}", self.name, key)
        return True

    def keys(self) -> frozenset[str]:
        return frozenset(self.tasks)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel every task and wait for them to finish."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True

        tasks = list(self.tasks.values())
        self.tasks.clear()
        if not tasks:
            return

        logger.info("[{}] Shutting down {} tasks", self.name, len(tasks))
        for task in tasks:
            if not task.done():
                task.cancel()
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning("[{}] Task did not stop: {}", self.name, task.get_name())

    def __len__(self) -> int:
        return len(self.tasks)

    def __contains__(self, key: object) -> bool:
        return key in self.tasks
