"""
Timer scheduling on the running event loop

Per-record expiry timers and reconnect backoffs share one scheduler so that
shutdown can cancel everything still pending. Callbacks may be plain
functions or coroutine functions; coroutine callbacks run as tasks.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...

    def cancel_all(self) -> None: ...

    def reopen(self) -> None: ...


class LoopTimer:
    """Handle returned by ``LoopScheduler.call_later``"""

    def __init__(self, scheduler: LoopScheduler):
        self._scheduler = scheduler
        self._handle: asyncio.TimerHandle | None = None
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        self._scheduler._handles.discard(self)


class LoopScheduler:
    """Scheduler backed by ``loop.call_later``"""

    def __init__(self) -> None:
        self._handles: set[LoopTimer] = set()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._handles)

    @property
    def closed(self) -> bool:
        return self._closed

    def call_later(self, delay: float, callback: Callable[[], Any]) -> LoopTimer:
        if self._closed:
            raise RuntimeError("Scheduler is closed")

        loop = asyncio.get_running_loop()
        timer = LoopTimer(self)

        def _fire() -> None:
            self._handles.discard(timer)
            try:
                if inspect.iscoroutinefunction(callback):
                    task = loop.create_task(callback())
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
                else:
                    callback()
            except Exception as e:
                logger.error(f"Scheduled callback failed: {e}", exc_info=True)

        timer._handle = loop.call_later(max(0.0, delay), _fire)
        self._handles.add(timer)
        return timer

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scheduled task failed: {exc}", exc_info=exc)

    def cancel_all(self) -> None:
        """Cancel pending timers and running callback tasks; no new timers are accepted"""
        self._closed = True
        for timer in list(self._handles):
            timer.cancel()
        self._handles.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def reopen(self) -> None:
        """Accept timers again after ``cancel_all``"""
        self._closed = False
