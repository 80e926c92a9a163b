"""Cancellable timers for the autosave debounce and the flow clock.

Callbacks are scheduled as coroutine jobs on an APScheduler
``AsyncIOScheduler``, so every firing runs on the event loop thread that
also processes edits. Nothing here sleeps or blocks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

Callback = Callable[[], None]


class TimerHandle(ABC):
    """Opaque token for a pending timer."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """Whether the timer may still fire."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer. Cancelling twice or after firing is a no-op."""


class TimerFactory(ABC):
    """Creates one-shot and repeating timers."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""


class ScheduledJob(TimerHandle):
    """Handle for a job registered on an APScheduler scheduler."""

    def __init__(self, scheduler: AsyncIOScheduler, job_id: str, callback: Callback, *, repeating: bool) -> None:
        self._scheduler = scheduler
        self.job_id = job_id
        self._callback = callback
        self._repeating = repeating
        self._cancelled = False
        self._fired = False

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._fired

    def cancel(self) -> None:
        if not self.active:
            return
        self._cancelled = True
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            # the job already ran and was dropped by the scheduler
            logger.trace("Timer {} was already consumed", self.job_id)

    async def run(self) -> None:
        # a cancel that lands after the job was dispatched still wins
        if not self.active:
            return
        if not self._repeating:
            self._fired = True
        self._callback()


class SchedulerTimers(TimerFactory):
    """Timer factory backed by an ``AsyncIOScheduler``.

    Must be started from inside a running event loop.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self) -> None:
        if self.scheduler.running:
            return
        logger.debug("Starting timer scheduler")
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            logger.debug("Shutting down timer scheduler")
            self.scheduler.shutdown(wait=False)

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = ScheduledJob(self.scheduler, f"once-{uuid4().hex}", callback, repeating=False)
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self.scheduler.add_job(
            handle.run,
            trigger="date",
            run_date=run_date,
            id=handle.job_id,
            misfire_grace_time=None,
        )
        return handle

    def call_every(self, interval: float, callback: Callback) -> TimerHandle:
        handle = ScheduledJob(self.scheduler, f"every-{uuid4().hex}", callback, repeating=True)
        self.scheduler.add_job(
            handle.run,
            trigger="interval",
            seconds=interval,
            id=handle.job_id,
            coalesce=False,
            max_instances=1,
            misfire_grace_time=None,
        )
        return handle


__all__ = ["Callback", "TimerHandle", "TimerFactory", "ScheduledJob", "SchedulerTimers"]
