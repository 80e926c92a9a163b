"""Application-level configuration models."""

from __future__ import annotations

from pydantic import Field

from abbey.config.autosave import AutosaveConfig
from abbey.config.base import BaseConfig
from abbey.config.flow import FlowConfig
from abbey.config.storage import StorageConfig


class AppConfig(BaseConfig):
    """Top-level runtime configuration for the writing tool."""

    data_root: str | None = Field(
        None,
        description="Directory holding snapshots and exports; 'env:VAR' allowed. Defaults to ~/Documents/Abbey",
    )
    logging_level: str = Field("INFO", description="Log level: DEBUG, INFO, WARNING, ERROR")
    log_to_file: bool = Field(False, description="Also write serialized logs to <data_root>/logs")

    autosave: AutosaveConfig = Field(default_factory=AutosaveConfig, description="Autosave settings")
    flow: FlowConfig = Field(default_factory=FlowConfig, description="Flow session settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage settings")


__all__ = ["AppConfig"]
