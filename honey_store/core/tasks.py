"""
Background task runners.

Request handlers hand fire-and-forget work (payment dispatch, settlement) to a
TaskRunner and return without waiting for it. Tests swap in the inline runner
or drain the background runner to await completion deterministically.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

import structlog

logger = structlog.get_logger(__name__)

TaskFunc = Callable[..., Awaitable[Any]]


class TaskRunner:
    """Interface for submitting fire-and-forget async work."""

    async def submit(self, func: TaskFunc, *args: Any, name: Optional[str] = None) -> None:
        raise NotImplementedError

    async def drain(self) -> None:
        """Wait until all submitted work has finished."""

    async def shutdown(self) -> None:
        """Stop accepting work and cancel whatever is still running."""


class BackgroundTaskRunner(TaskRunner):
    """Runs submitted work as asyncio tasks on the current event loop."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def submit(self, func: TaskFunc, *args: Any, name: Optional[str] = None) -> None:
        if self._closed:
            logger.warning("task_rejected_runner_closed", task=name or func.__name__)
            return
        task = asyncio.create_task(func(*args), name=name or func.__name__)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("background_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self) -> None:
        # Tasks may submit follow-up work while draining.
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()


class InlineTaskRunner(TaskRunner):
    """Awaits submitted work before returning. Failures are logged, not raised."""

    async def submit(self, func: TaskFunc, *args: Any, name: Optional[str] = None) -> None:
        try:
            await func(*args)
        except Exception as e:
            logger.error(
                "inline_task_failed",
                task=name or func.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
