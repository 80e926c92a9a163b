"""Autosave configuration models."""

from __future__ import annotations

from pydantic import Field

from abbey.config.base import BaseConfig


class AutosaveConfig(BaseConfig):
    """Debounce settings for persisting edits in the background."""

    enabled: bool = Field(True, description="Whether edits arm a delayed save")
    delay_seconds: float = Field(
        2.0,
        gt=0.0,
        description="Quiet period after the last edit before the collection is flushed",
    )


__all__ = ["AutosaveConfig"]
