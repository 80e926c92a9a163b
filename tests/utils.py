"""Shared helpers for the test suite."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from abbey.timers import Callback, TimerFactory, TimerHandle


@contextmanager
def logger_to_stderr(level: str = "INFO") -> Iterator[None]:
    """Temporarily route Loguru output to stderr for assertion."""

    handler_id = logger.add(sys.stderr, level=level)
    try:
        yield
    finally:
        logger.remove(handler_id)


class ManualHandle(TimerHandle):
    def __init__(self, due: float, callback: Callback, interval: float | None) -> None:
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers(TimerFactory):
    """Deterministic timer factory driven by :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[ManualHandle] = []

    def call_later(self, delay: float, callback: Callback) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback, None)
        self.handles.append(handle)
        return handle

    def call_every(self, interval: float, callback: Callback) -> ManualHandle:
        handle = ManualHandle(self.now + interval, callback, interval)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [handle for handle in self.handles if handle.active]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = [handle for handle in self.pending if handle.due <= target]
            if not due:
                break
            handle = min(due, key=lambda item: item.due)
            self.now = handle.due
            if handle.interval is None:
                handle.fired = True
            else:
                handle.due += handle.interval
            handle.callback()
        self.now = target


def write_config(path: Path, data_root: Path, extra: str = "") -> Path:
    path.write_text(f'data_root = "{data_root.as_posix()}"\n{extra}', encoding="utf-8")
    return path
