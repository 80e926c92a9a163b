"""State machine for one timed free-writing session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from abbey.events import Signal
from abbey.storage.models import Flow, utcnow
from abbey.text import word_count
from abbey.timers import TimerFactory, TimerHandle

_TICK_SECONDS = 1


class FlowState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class FlowStateError(RuntimeError):
    """Raised when an operation is not allowed in the current flow state."""


def format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(int(seconds), 0), 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass(frozen=True, slots=True)
class FlowTick:
    """Snapshot emitted by each clock tick while a session runs."""

    remaining_seconds: int
    elapsed_seconds: int
    word_count: int
    ending: bool = False

    @property
    def label(self) -> str:
        return format_clock(self.remaining_seconds)


class FlowSession:
    """A single-use countdown that produces exactly one :class:`Flow`.

    ``IDLE -> RUNNING -> (PAUSED <-> RUNNING) -> ENDED``. The clock is a
    repeating one-second timer from ``timers``; it is cancelled on every
    path out of the running states, including :meth:`close`.
    """

    def __init__(self, timers: TimerFactory, *, warning_seconds: int = 60) -> None:
        self._timers = timers
        self.warning_seconds = warning_seconds
        self.state = FlowState.IDLE
        self.remaining_seconds = 0
        self.elapsed_seconds = 0
        self._text = ""
        self._record: Flow | None = None
        self._clock: TimerHandle | None = None
        self.ticks: Signal[FlowTick] = Signal("flow.ticks")
        self.ended: Signal[Flow] = Signal("flow.ended")

    def __enter__(self) -> "FlowSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def text(self) -> str:
        return self._text

    @property
    def word_count(self) -> int:
        return word_count(self._text)

    @property
    def duration_minutes(self) -> int | None:
        return self._record.duration_minutes if self._record is not None else None

    def start(self, duration_minutes: int) -> None:
        if self.state is not FlowState.IDLE:
            raise FlowStateError(f"Cannot start a flow session that is {self.state.value}")
        if duration_minutes <= 0:
            raise ValueError("Flow duration must be a positive number of minutes")
        self._record = Flow(duration_minutes=duration_minutes, created_at=utcnow())
        self.remaining_seconds = duration_minutes * 60
        self.elapsed_seconds = 0
        self.state = FlowState.RUNNING
        self._clock = self._timers.call_every(_TICK_SECONDS, self.tick)
        logger.info("Flow session started for {} minute(s)", duration_minutes)

    def tick(self) -> None:
        if self.state is not FlowState.RUNNING:
            return
        self.remaining_seconds -= 1
        self.elapsed_seconds += 1
        self.ticks.emit(self._snapshot())
        if self.remaining_seconds <= 0:
            logger.info("Flow session time is up")
            self.end()

    def toggle_pause(self) -> bool:
        """Pause or resume; returns ``True`` when the session is now paused."""
        if self.state is FlowState.RUNNING:
            self.state = FlowState.PAUSED
        elif self.state is FlowState.PAUSED:
            self.state = FlowState.RUNNING
        else:
            raise FlowStateError(f"Cannot pause a flow session that is {self.state.value}")
        return self.state is FlowState.PAUSED

    def update_text(self, text: str) -> None:
        self._text = text

    def end(self) -> Flow | None:
        """Finish the session and emit the completed record exactly once."""
        if self.state not in (FlowState.RUNNING, FlowState.PAUSED) or self._record is None:
            return None
        self._stop_clock()
        self.state = FlowState.ENDED
        flow = self._record.model_copy(
            update={"content": self._text, "actual_duration_seconds": self.elapsed_seconds}
        )
        self._record = flow
        logger.info("Flow session ended after {}s with {} words", self.elapsed_seconds, flow.word_count)
        self.ended.emit(flow)
        return flow

    def close(self) -> None:
        """Tear the session down; an unfinished session is discarded without emitting."""
        self._stop_clock()
        if self.state in (FlowState.RUNNING, FlowState.PAUSED):
            logger.warning("Discarding unfinished flow session after {}s", self.elapsed_seconds)
            self.state = FlowState.ENDED
            self._record = None

    def _stop_clock(self) -> None:
        clock, self._clock = self._clock, None
        if clock is not None:
            clock.cancel()

    def _snapshot(self) -> FlowTick:
        return FlowTick(
            remaining_seconds=self.remaining_seconds,
            elapsed_seconds=self.elapsed_seconds,
            word_count=self.word_count,
            ending=0 < self.remaining_seconds <= self.warning_seconds,
        )


__all__ = ["FlowSession", "FlowState", "FlowStateError", "FlowTick", "format_clock"]
