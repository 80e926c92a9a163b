"""Debounce edits into a single delayed flush."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from loguru import logger

from abbey.storage.errors import PersistenceError
from abbey.storage.models import utcnow
from abbey.timers import TimerFactory, TimerHandle

FlushFn = Callable[[], None]
ErrorHandler = Callable[[PersistenceError], None]


class AutosaveState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


@dataclass
class AutosaveStats:
    """Counters describing how the scheduler has flushed so far."""

    flush_count: int = 0
    failure_count: int = 0
    last_flush_at: datetime | None = None
    last_error: str | None = None


class AutosaveScheduler:
    """Coalesce bursts of change notifications into one flush.

    Every :meth:`notify_changed` replaces the pending timer, so a flush only
    happens once edits have been quiet for ``delay_seconds``. Failed flushes
    are reported and dropped; the next change arms a new timer.
    """

    def __init__(
        self,
        flush: FlushFn,
        timers: TimerFactory,
        *,
        delay_seconds: float = 2.0,
        enabled: bool = True,
        on_error: ErrorHandler | None = None,
    ) -> None:
        if delay_seconds <= 0:
            raise ValueError("delay_seconds must be positive")
        self._flush = flush
        self._timers = timers
        self.delay_seconds = delay_seconds
        self.enabled = enabled
        self._on_error = on_error
        self._handle: TimerHandle | None = None
        self.stats = AutosaveStats()

    @property
    def state(self) -> AutosaveState:
        return AutosaveState.ARMED if self.pending else AutosaveState.IDLE

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.active

    def notify_changed(self) -> None:
        """Arm or re-arm the delayed flush."""
        if not self.enabled:
            return
        handle = self._timers.call_later(self.delay_seconds, self._on_timer)
        previous, self._handle = self._handle, handle
        if previous is not None:
            previous.cancel()

    def save_now(self) -> bool:
        """Cancel any pending timer and flush immediately."""
        self.cancel()
        return self._run_flush()

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def close(self) -> None:
        """Flush a pending change, if any, and leave the scheduler idle."""
        if self.pending:
            logger.debug("Flushing pending autosave on close")
            self.save_now()
        else:
            self.cancel()

    def _on_timer(self) -> None:
        handle = self._handle
        # a handle replaced or cancelled since dispatch must not flush
        if handle is None or handle.active:
            return
        self._handle = None
        self._run_flush()

    def _run_flush(self) -> bool:
        try:
            self._flush()
        except PersistenceError as exc:
            self.stats.failure_count += 1
            self.stats.last_error = str(exc)
            logger.error("Autosave failed: {}", exc)
            if self._on_error is not None:
                self._on_error(exc)
            return False
        self.stats.flush_count += 1
        self.stats.last_flush_at = utcnow()
        self.stats.last_error = None
        logger.debug("Autosave flushed (total {})", self.stats.flush_count)
        return True


__all__ = ["AutosaveScheduler", "AutosaveState", "AutosaveStats", "ErrorHandler", "FlushFn"]
