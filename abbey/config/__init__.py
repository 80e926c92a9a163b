"""Configuration namespace for abbey."""

from __future__ import annotations

from .app import AppConfig
from .autosave import AutosaveConfig
from .base import BaseConfig, load_config
from .flow import FlowConfig
from .storage import StorageConfig
from .utils import resolve_env_reference, resolve_path_reference

__all__ = [
    "BaseConfig",
    "AppConfig",
    "load_config",
    "AutosaveConfig",
    "FlowConfig",
    "StorageConfig",
    "resolve_env_reference",
    "resolve_path_reference",
]
