"""Persistence layer: entities, snapshots and Markdown exports."""

from __future__ import annotations

from .errors import DecodeError, NotFoundError, PersistenceError, WriteError
from .models import (
    Composition,
    Flow,
    FlowDocument,
    Folder,
    Note,
    Project,
    PublishingSettings,
    Settings,
)
from .renderer import MarkdownRenderer, format_duration
from .store import PersistenceStore, StoreKind, StoreLayout, resolve_root, sanitize_filename

__all__ = [
    "Composition",
    "DecodeError",
    "Flow",
    "FlowDocument",
    "Folder",
    "MarkdownRenderer",
    "Note",
    "NotFoundError",
    "PersistenceError",
    "PersistenceStore",
    "Project",
    "PublishingSettings",
    "Settings",
    "StoreKind",
    "StoreLayout",
    "WriteError",
    "format_duration",
    "resolve_root",
    "sanitize_filename",
]
