"""
Async task registry for recognizer listeners and fire-and-forget work.

Every background task the relay spawns (one listener per AudioChannel,
one per persisted turn) goes through here so failures are logged with
their name and nothing is left running at shutdown.
"""

import asyncio
import itertools
import logging
from typing import Any, Coroutine, Dict, Optional

logger = logging.getLogger("relay.tasks")


class TaskRegistry:
    """Named tracking of background asyncio tasks."""

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._seq = itertools.count(1)
        self._failed_count = 0
        self._completed_count = 0

    def register(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """
        Start ``coro`` as a tracked task.

        Names are made unique with a sequence suffix, so two channels for
        the same key never shadow each other.

        Returns:
            The created asyncio.Task
        """
        unique = f"{name}#{next(self._seq)}"
        task = asyncio.create_task(coro, name=unique)
        self._tasks[unique] = task
        task.add_done_callback(lambda t: self._on_done(unique, t))
        logger.debug(f"Task registered: {unique}")
        return task

    def _on_done(self, name: str, task: asyncio.Task) -> None:
        self._tasks.pop(name, None)
        self._completed_count += 1

        if task.cancelled():
            logger.debug(f"Task '{name}' was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            self._failed_count += 1
            logger.error(f"Task '{name}' failed: {exc}", exc_info=exc)

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    @property
    def failed_count(self) -> int:
        return self._failed_count

    @property
    def completed_count(self) -> int:
        return self._completed_count

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel every tracked task and wait up to ``timeout`` for them."""
        if not self._tasks:
            return

        tasks = list(self._tasks.values())
        logger.info(f"Cancelling {len(tasks)} background tasks")
        for task in tasks:
            task.cancel()

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(f"Shutdown timeout: {len(pending)} tasks still running")

    def get_stats(self) -> dict:
        return {
            "active": self.active_count,
            "completed": self._completed_count,
            "failed": self._failed_count,
        }


_default_registry: Optional[TaskRegistry] = None


def get_default_registry() -> TaskRegistry:
    """Get or create the process-wide task registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = TaskRegistry()
    return _default_registry


def safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "task",
    registry: Optional[TaskRegistry] = None,
) -> asyncio.Task:
    """Fire-and-forget ``coro`` with failure logging."""
    if registry is None:
        registry = get_default_registry()
    return registry.register(name, coro)
