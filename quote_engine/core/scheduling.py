"""Cancellable delayed callbacks.

The recalculation controller only ever talks to a ``Scheduler`` so tests can
swap in a manual clock and hosts can bind it to their own loop.
"""
import asyncio
from typing import Callable, Optional


class ScheduledTask:
    def cancel(self) -> None:
        raise NotImplementedError

    def cancelled(self) -> bool:
        raise NotImplementedError


class Scheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        raise NotImplementedError


class _TimerTask(ScheduledTask):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        loop = self._loop or asyncio.get_running_loop()
        return _TimerTask(loop.call_later(delay, callback))
