"""Error taxonomy for the persistence layer."""

from __future__ import annotations

from pathlib import Path


class PersistenceError(RuntimeError):
    """Base class for storage failures."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class NotFoundError(PersistenceError):
    """The home or documents directory needed at startup does not exist."""


class DecodeError(PersistenceError):
    """A snapshot exists but cannot be parsed."""


class WriteError(PersistenceError):
    """Writing a snapshot or export to disk failed."""


__all__ = ["PersistenceError", "NotFoundError", "DecodeError", "WriteError"]
