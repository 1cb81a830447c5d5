"""Asyncio-backed TimerService."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from piano_tutor.domain.interfaces import Cancellable, TimerService

logger = logging.getLogger(__name__)


class AsyncioTimers(TimerService):
    """
    Schedules on the running event loop.

    Task failures are logged when the task finishes; cancellation is not a
    failure.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> Cancellable:
        return self.loop.call_later(delay_s, callback)

    def create_task(self, coro: Coroutine[Any, Any, Any]) -> Cancellable:
        task = self.loop.create_task(coro)
        task.add_done_callback(_log_task_failure)
        return task


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task failed: {exc!r}", exc_info=exc)
