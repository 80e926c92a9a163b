"""Debounced background persistence of edits."""

from .service import AutosaveScheduler, AutosaveState, AutosaveStats

__all__ = ["AutosaveScheduler", "AutosaveState", "AutosaveStats"]
