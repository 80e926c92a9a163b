"""Storage configuration models."""

from __future__ import annotations

from pydantic import Field, field_validator

from abbey.config.base import BaseConfig


class StorageConfig(BaseConfig):
    """Options for snapshots and derived Markdown exports."""

    export_on_save: bool = Field(
        True,
        description="Write the active composition as Markdown on explicit save",
    )
    journal_name: str = Field(
        "Flow Journal.md",
        min_length=1,
        description="File name of the cumulative flow journal inside flows/",
    )

    @field_validator("journal_name")
    @classmethod
    def _plain_file_name(cls, name: str) -> str:
        if "/" in name or "\\" in name:
            raise ValueError("journal_name must be a file name, not a path")
        return name


__all__ = ["StorageConfig"]
