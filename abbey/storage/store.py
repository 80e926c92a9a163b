"""Whole-collection snapshots on disk plus derived Markdown exports."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Sequence
from uuid import uuid4

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from abbey.config import AppConfig, resolve_path_reference

from .errors import DecodeError, NotFoundError, WriteError
from .models import Composition, Flow, FlowDocument, Folder, Project, Settings
from .renderer import MarkdownRenderer

_APP_DIR_NAME = "Abbey"
_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')


class StoreKind(str, Enum):
    """Independent snapshot files kept under the store root."""

    COMPOSITIONS = "compositions"
    FOLDERS = "folders"
    FLOWS = "flows"
    PROJECTS = "projects"
    SETTINGS = "settings"

    @property
    def filename(self) -> str:
        return f"{self.value}.json"


_COLLECTION_ADAPTERS: dict[StoreKind, TypeAdapter[Any]] = {
    StoreKind.COMPOSITIONS: TypeAdapter(list[Composition]),
    StoreKind.FOLDERS: TypeAdapter(list[Folder]),
    StoreKind.FLOWS: TypeAdapter(list[Flow]),
    StoreKind.PROJECTS: TypeAdapter(list[Project]),
}


def sanitize_filename(name: str) -> str:
    """Replace characters that are unsafe in file names and trim whitespace."""

    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip()
    return cleaned or "Untitled"


def resolve_root(data_root: str | None, *, home: Path | None = None) -> Path:
    """Locate the application directory.

    An explicit ``data_root`` wins. Otherwise the store lives in
    ``~/Documents/Abbey`` and a missing home or Documents directory raises
    :class:`NotFoundError`.
    """

    try:
        configured = resolve_path_reference(data_root)
    except EnvironmentError as exc:
        raise NotFoundError(f"Cannot resolve data_root: {exc}") from exc
    if configured is not None:
        return configured.resolve()

    if home is None:
        try:
            home = Path.home()
        except RuntimeError as exc:
            raise NotFoundError("Could not find user home directory") from exc
    if not home.is_dir():
        raise NotFoundError(f"Home directory {home} does not exist", path=home)

    documents = home / "Documents"
    if not documents.is_dir():
        raise NotFoundError(f"Could not find Documents directory under {home}", path=documents)
    return documents / _APP_DIR_NAME


@dataclass(slots=True)
class StoreLayout:
    """Resolved filesystem locations used by the store."""

    root: Path
    compositions_dir: Path
    flows_dir: Path
    projects_dir: Path

    @classmethod
    def at(cls, root: Path) -> "StoreLayout":
        return cls(
            root=root,
            compositions_dir=root / "compositions",
            flows_dir=root / "flows",
            projects_dir=root / "projects",
        )

    def ensure_directories(self) -> None:
        for directory in (self.root, self.compositions_dir, self.flows_dir, self.projects_dir):
            directory.mkdir(parents=True, exist_ok=True)


class PersistenceStore:
    """Load and save entity collections as whole snapshots.

    Saves always replace the entire file; callers that want a
    read-modify-write load the collection, change it and save it back.
    """

    def __init__(
        self,
        root: Path,
        *,
        journal_name: str = "Flow Journal.md",
        renderer: MarkdownRenderer | None = None,
    ) -> None:
        self.layout = StoreLayout.at(Path(root))
        try:
            self.layout.ensure_directories()
        except OSError as exc:
            raise WriteError(f"Cannot create storage directories under {root}: {exc}", path=Path(root)) from exc
        self.journal_path = self.layout.flows_dir / journal_name
        self._renderer = renderer or MarkdownRenderer()

    @classmethod
    def from_config(cls, config: AppConfig, *, home: Path | None = None) -> "PersistenceStore":
        root = resolve_root(config.data_root, home=home)
        logger.info("Using storage root {}", root)
        return cls(root, journal_name=config.storage.journal_name)

    @property
    def root(self) -> Path:
        return self.layout.root

    def snapshot_path(self, kind: StoreKind) -> Path:
        return self.layout.root / kind.filename

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    def load(self, kind: StoreKind) -> list[Any]:
        """Return the stored collection, or an empty list when none was saved yet."""
        adapter = self._adapter(kind)
        path = self.snapshot_path(kind)
        raw = self._read(path)
        if raw is None:
            return []
        try:
            items = adapter.validate_json(raw)
        except ValidationError as exc:
            raise DecodeError(f"Malformed {kind.value} snapshot at {path}: {exc.error_count()} error(s)", path=path) from exc
        logger.debug("Loaded {} {} from {}", len(items), kind.value, path)
        return items

    def save(self, kind: StoreKind, items: Sequence[Any]) -> None:
        """Replace the stored collection with ``items``."""
        adapter = self._adapter(kind)
        path = self.snapshot_path(kind)
        payload = adapter.dump_json(list(items), indent=2)
        self._write_atomic(path, payload)
        logger.debug("Saved {} {} to {}", len(items), kind.value, path)

    def load_settings(self) -> Settings:
        path = self.snapshot_path(StoreKind.SETTINGS)
        raw = self._read(path)
        if raw is None:
            return Settings()
        try:
            return Settings.model_validate_json(raw)
        except ValidationError as exc:
            raise DecodeError(f"Malformed settings snapshot at {path}", path=path) from exc

    def save_settings(self, settings: Settings) -> None:
        path = self.snapshot_path(StoreKind.SETTINGS)
        self._write_atomic(path, settings.model_dump_json(indent=2).encode("utf-8"))

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------
    def append_flow(self, flow: Flow) -> bool:
        """Store ``flow`` at the head of the flow collection and journal it.

        The collection save raises on failure. The journal append is
        best-effort: its failure is logged and reported by returning
        ``False``, and the saved collection is kept.
        """
        flows = self.load(StoreKind.FLOWS)
        flows.insert(0, flow)
        self.save(StoreKind.FLOWS, flows)
        logger.info("Saved flow {} ({} words, {}s)", flow.id, flow.word_count, flow.actual_duration_seconds)

        try:
            self.append_journal(flow)
        except WriteError as exc:
            logger.warning("Flow {} saved but journal append failed: {}", flow.id, exc)
            return False
        return True

    def append_journal(self, flow: Flow) -> Path:
        path = self.journal_path
        entry = self._renderer.render_journal_entry(flow)
        try:
            is_new = not path.exists()
            with path.open("a", encoding="utf-8") as handle:
                if is_new:
                    handle.write(self._renderer.journal_header())
                handle.write(entry)
        except OSError as exc:
            raise WriteError(f"Failed to append to journal {path}: {exc}", path=path) from exc
        return path

    def flow_document(self) -> FlowDocument:
        return FlowDocument(flows=self.load(StoreKind.FLOWS))

    def render_flow_document(self, document: FlowDocument | None = None) -> str:
        return self._renderer.render_flow_document(document or self.flow_document())

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------
    def render_composition(self, composition: Composition) -> str:
        return self._renderer.render_composition(composition)

    def export_composition(self, composition: Composition) -> Path:
        """Write ``composition`` to ``compositions/<title>.md``."""
        path = self.layout.compositions_dir / f"{sanitize_filename(composition.title)}.md"
        markdown = self.render_composition(composition)
        self._write_atomic(path, markdown.encode("utf-8"))
        logger.debug("Exported composition {} to {}", composition.id, path)
        return path

    def render_project(self, project: Project, compositions: Iterable[Composition]) -> str:
        return self._renderer.render_project(project, compositions)

    def export_project(self, project: Project, compositions: Iterable[Composition]) -> Path:
        """Write ``project`` to ``projects/<title>/<title>.md`` in publication order."""
        name = sanitize_filename(project.title)
        folder = self.layout.projects_dir / name
        markdown = self.render_project(project, compositions)
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(f"Cannot create project folder {folder}: {exc}", path=folder) from exc
        path = folder / f"{name}.md"
        self._write_atomic(path, markdown.encode("utf-8"))
        logger.info("Exported project '{}' to {}", project.title, path)
        return path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _adapter(self, kind: StoreKind) -> TypeAdapter[Any]:
        try:
            return _COLLECTION_ADAPTERS[kind]
        except KeyError:
            raise ValueError(f"{kind.value} is not a collection; use load_settings/save_settings") from None

    def _read(self, path: Path) -> bytes | None:
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise DecodeError(f"Cannot read snapshot {path}: {exc}", path=path) from exc

    def _write_atomic(self, path: Path, data: bytes) -> None:
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise WriteError(f"Failed to write {path}: {exc}", path=path) from exc


__all__ = ["PersistenceStore", "StoreKind", "StoreLayout", "resolve_root", "sanitize_filename"]
