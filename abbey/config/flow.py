"""Flow (timed free-writing) configuration models."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from abbey.config.base import BaseConfig


class FlowConfig(BaseConfig):
    """Durations offered for flow sessions and timer display hints."""

    durations: list[int] = Field(
        default_factory=lambda: [5, 10, 15, 20],
        description="Session lengths in minutes offered to the user",
    )
    default_minutes: int = Field(10, description="Duration used when none is chosen")
    warning_seconds: int = Field(
        60,
        ge=0,
        description="Remaining seconds below which ticks are flagged as ending",
    )

    @field_validator("durations")
    @classmethod
    def _positive_durations(cls, durations: list[int]) -> list[int]:
        if not durations:
            raise ValueError("At least one flow duration must be configured.")
        if any(minutes <= 0 for minutes in durations):
            raise ValueError("Flow durations must be positive minute counts.")
        return durations

    @model_validator(mode="after")
    def _default_is_offered(self) -> "FlowConfig":
        if self.default_minutes not in self.durations:
            msg = f"default_minutes={self.default_minutes} is not one of {self.durations}"
            raise ValueError(msg)
        return self


__all__ = ["FlowConfig"]
