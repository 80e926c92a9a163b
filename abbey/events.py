"""Typed event channels between the core and its UI collaborators."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

Handler = Callable[[T], None]


class Signal(Generic[T]):
    """An event channel with at most one consumer.

    Each event kind has exactly one owner on the receiving side, so
    :meth:`connect` refuses a second handler until the first one is
    disconnected. Emitting with no consumer is allowed and dropped.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handler: Handler[T] | None = None

    @property
    def connected(self) -> bool:
        return self._handler is not None

    def connect(self, handler: Handler[T]) -> None:
        if self._handler is not None and self._handler is not handler:
            raise RuntimeError(f"Signal '{self.name}' already has a consumer")
        self._handler = handler

    def disconnect(self, handler: Handler[T] | None = None) -> None:
        """Remove the consumer; passing a different handler than the connected one is a no-op."""
        if handler is None or handler is self._handler:
            self._handler = None

    def emit(self, payload: T) -> None:
        handler = self._handler
        if handler is None:
            logger.trace("Signal '{}' emitted without a consumer", self.name)
            return
        handler(payload)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, connected={self.connected})"


__all__ = ["Signal", "Handler"]
