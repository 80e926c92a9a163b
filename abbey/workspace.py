"""Coordinator that wires the registry, autosave, storage and flow sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from abbey.autosave import AutosaveScheduler
from abbey.config import AppConfig
from abbey.events import Signal
from abbey.flow import FlowSession, FlowState, FlowStateError
from abbey.projects import ProjectBook
from abbey.registry import CompositionRegistry
from abbey.storage import (
    Composition,
    DecodeError,
    Flow,
    FlowDocument,
    Folder,
    Note,
    PersistenceError,
    PersistenceStore,
    Project,
    Settings,
    StoreKind,
)
from abbey.storage.models import utcnow
from abbey.timers import TimerFactory


@dataclass(frozen=True, slots=True)
class Notification:
    """A short user-facing message, shown as a toast by the UI."""

    message: str
    level: str = "info"

    @property
    def is_error(self) -> bool:
        return self.level == "error"


class Workspace:
    """Everything one writing session needs, behind a single object.

    Editor edits go through the autosave debounce. Structural changes,
    folder and project edits are written immediately. Completed flows are
    persisted on their own path when the session emits ``ended``.
    """

    def __init__(
        self,
        config: AppConfig,
        store: PersistenceStore,
        timers: TimerFactory,
        *,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.store = store
        self.timers = timers
        self._now = now
        self.notifications: Signal[Notification] = Signal("workspace.notifications")
        self.registry = CompositionRegistry(now=now)
        self.projects = ProjectBook(now=now)
        self.settings = Settings()
        self.autosave = AutosaveScheduler(
            self._flush_compositions,
            timers,
            delay_seconds=config.autosave.delay_seconds,
            enabled=config.autosave.enabled,
            on_error=self._on_autosave_error,
        )
        self.flow_session: FlowSession | None = None
        self._file_sink_id: int | None = None
        self._closed = False

    @classmethod
    def open(
        cls,
        config: AppConfig,
        timers: TimerFactory,
        *,
        home: Path | None = None,
        on_notify: Callable[[Notification], None] | None = None,
    ) -> "Workspace":
        """Resolve the store, load every collection and reopen the last document.

        ``NotFoundError`` from the store propagates; malformed snapshots
        are reported and replaced by empty collections.
        """
        store = PersistenceStore.from_config(config, home=home)
        workspace = cls(config, store, timers)
        if on_notify is not None:
            workspace.notifications.connect(on_notify)
        if config.log_to_file:
            workspace._setup_logging_sink()
        workspace.load()
        return workspace

    def load(self) -> None:
        folders = self._load_collection(StoreKind.FOLDERS)
        compositions = self._load_collection(StoreKind.COMPOSITIONS)
        self.registry = CompositionRegistry(compositions, folders, now=self._now)
        self.projects = ProjectBook(self._load_collection(StoreKind.PROJECTS), now=self._now)
        try:
            self.settings = self.store.load_settings()
        except DecodeError as exc:
            logger.error("Failed to load settings: {}", exc)
            self._notify("Settings could not be read; defaults are in use", level="error")
            self.settings = Settings()

        last_id = self.settings.last_opened_composition
        last = self.registry.get(last_id) if last_id else None
        if last is not None and not last.archived:
            self.registry.open(last.id)
        logger.info(
            "Workspace loaded: {} composition(s), {} folder(s), {} project(s)",
            len(compositions),
            len(folders),
            len(self.projects.projects),
        )

    # ------------------------------------------------------------------
    # Editor
    # ------------------------------------------------------------------
    @property
    def active(self) -> Composition | None:
        return self.registry.active

    def open_composition(self, composition_id: str) -> bool:
        opened = self.registry.open(composition_id)
        if opened:
            self.settings.last_opened_composition = composition_id
        return opened

    def new_composition(self, *, title: str | None = None, content: str = "") -> Composition:
        composition = self.registry.insert_new(title=title, content=content)
        self.settings.last_opened_composition = composition.id
        self.autosave.notify_changed()
        return composition

    def edit(
        self,
        *,
        title: str | None = None,
        content: str | None = None,
        notes: list[Note] | None = None,
    ) -> Composition | None:
        updated = self.registry.apply_editor_change(title=title, content=content, notes=notes)
        if updated is not None:
            self.autosave.notify_changed()
        return updated

    def add_note(self, text: str) -> Note | None:
        note = self.registry.add_note(text)
        if note is not None:
            self.autosave.notify_changed()
        return note

    def delete_note(self, note_id: str) -> bool:
        deleted = self.registry.delete_note(note_id)
        if deleted:
            self.autosave.notify_changed()
        return deleted

    def save(self) -> Path | None:
        """Flush now and export the active composition as Markdown when configured."""
        if not self.autosave.save_now():
            return None
        active = self.registry.active
        if active is None or not self.config.storage.export_on_save:
            return None
        try:
            return self.store.export_composition(active)
        except PersistenceError as exc:
            logger.error("Failed to export '{}': {}", active.display_title, exc)
            self._notify(f"Failed to export '{active.display_title}'", level="error")
            return None

    def export_composition(self, composition_id: str) -> Path | None:
        composition = self.registry.get(composition_id)
        if composition is None:
            return None
        try:
            return self.store.export_composition(composition)
        except PersistenceError as exc:
            logger.error("Failed to export '{}': {}", composition.display_title, exc)
            self._notify(f"Failed to export '{composition.display_title}'", level="error")
            return None

    # ------------------------------------------------------------------
    # Structural changes, persisted immediately
    # ------------------------------------------------------------------
    def archive_active(self) -> Composition | None:
        archived = self.registry.archive_active()
        if archived is not None:
            self.settings.last_opened_composition = None
            self._persist_compositions()
        return archived

    def archive(self, composition_id: str) -> bool:
        was_active = composition_id == self.registry.active_id
        if not self.registry.archive(composition_id):
            return False
        if was_active:
            self.settings.last_opened_composition = None
        return self._persist_compositions()

    def restore(self, composition_id: str) -> bool:
        if not self.registry.restore(composition_id):
            return False
        return self._persist_compositions()

    def move_to_folder(self, composition_id: str, folder_id: str | None) -> bool:
        if not self.registry.move_to_folder(composition_id, folder_id):
            return False
        return self._persist_compositions()

    def create_folder(self, name: str) -> Folder:
        folder = self.registry.create_folder(name)
        self._persist_folders()
        return folder

    def rename_folder(self, folder_id: str, name: str) -> bool:
        if not self.registry.rename_folder(folder_id, name):
            return False
        return self._persist_folders()

    def toggle_folder(self, folder_id: str) -> bool | None:
        expanded = self.registry.toggle_folder(folder_id)
        if expanded is not None:
            self._persist_folders()
        return expanded

    def delete_folder(self, folder_id: str) -> list[str] | None:
        if self.registry.get_folder(folder_id) is None:
            return None
        detached = self.registry.delete_folder(folder_id)
        # members are saved before the folder disappears from disk
        self._persist_compositions()
        self._persist_folders()
        return detached

    # ------------------------------------------------------------------
    # Flow sessions
    # ------------------------------------------------------------------
    def start_flow(
        self,
        minutes: int | None = None,
        *,
        on_ended: Callable[[Flow], None] | None = None,
    ) -> FlowSession:
        """Start a new session; ``on_ended`` runs after the completed flow is persisted."""
        session = self.flow_session
        if session is not None and session.state in (FlowState.RUNNING, FlowState.PAUSED):
            raise FlowStateError("A flow session is already running")
        if session is not None:
            session.close()
        session = FlowSession(self.timers, warning_seconds=self.config.flow.warning_seconds)
        session.ended.connect(partial(self._on_flow_ended, on_ended=on_ended))
        session.start(minutes if minutes is not None else self.config.flow.default_minutes)
        self.flow_session = session
        return session

    def flows(self) -> list[Flow]:
        try:
            return self.store.load(StoreKind.FLOWS)
        except DecodeError as exc:
            logger.error("Failed to load flows: {}", exc)
            self._notify("Failed to load flow history", level="error")
            return []

    def flow_document(self) -> FlowDocument:
        return FlowDocument(flows=self.flows())

    def render_journal(self) -> str:
        return self.store.render_flow_document(self.flow_document())

    def get_flow(self, flow_id: str) -> Flow | None:
        return next((flow for flow in self.flows() if flow.id == flow_id), None)

    def use_flow_in_new_composition(self, flow_id: str) -> Composition | None:
        flow = self.get_flow(flow_id)
        if flow is None:
            return None
        composition = self.registry.insert_new(content=flow.content)
        self.settings.last_opened_composition = composition.id
        self._persist_compositions()
        self._notify("New composition created from flow")
        return composition

    def append_flow_to_composition(self, flow_id: str, composition_id: str) -> bool:
        flow = self.get_flow(flow_id)
        target = self.registry.get(composition_id)
        if flow is None or target is None or target.archived:
            return False
        self.registry.append_text(composition_id, flow.content)
        saved = self._persist_compositions()
        if saved:
            self._notify(f"Flow appended to '{target.display_title}'")
        return saved

    def _on_flow_ended(self, flow: Flow, *, on_ended: Callable[[Flow], None] | None = None) -> None:
        try:
            journaled = self.store.append_flow(flow)
        except PersistenceError as exc:
            logger.error("Failed to save flow: {}", exc)
            self._notify("Failed to save flow", level="error")
        else:
            self._notify(f"Flow saved! {flow.word_count} words written")
            if not journaled:
                self._notify("Flow journal could not be updated", level="error")
        if on_ended is not None:
            on_ended(flow)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    def create_project(self, title: str, description: str = "") -> Project:
        project = self.projects.create(title, description)
        self._persist_projects()
        return project

    def rename_project(self, project_id: str, title: str) -> bool:
        return self._project_change(self.projects.rename(project_id, title))

    def describe_project(self, project_id: str, description: str) -> bool:
        return self._project_change(self.projects.describe(project_id, description))

    def add_to_project(self, project_id: str, composition_id: str) -> bool:
        if self.registry.get(composition_id) is None:
            return False
        return self._project_change(self.projects.add_composition(project_id, composition_id))

    def remove_from_project(self, project_id: str, composition_id: str) -> bool:
        return self._project_change(self.projects.remove_composition(project_id, composition_id))

    def move_in_project(self, project_id: str, from_index: int, to_index: int) -> bool:
        return self._project_change(self.projects.move_composition(project_id, from_index, to_index))

    def reorder_project(self, project_id: str, new_order: list[str]) -> bool:
        return self._project_change(self.projects.reorder(project_id, new_order))

    def delete_project(self, project_id: str) -> bool:
        return self._project_change(self.projects.delete(project_id))

    def project_compositions(self, project_id: str) -> list[Composition]:
        project = self.projects.get(project_id)
        if project is None:
            return []
        by_id = {composition.id: composition for composition in self.registry.compositions}
        return [by_id[cid] for cid in project.composition_ids if cid in by_id]

    def render_project(self, project_id: str) -> str | None:
        project = self.projects.get(project_id)
        if project is None:
            return None
        return self.store.render_project(project, self.registry.compositions)

    def export_project(self, project_id: str) -> Path | None:
        project = self.projects.get(project_id)
        if project is None:
            return None
        try:
            path = self.store.export_project(project, self.registry.compositions)
        except PersistenceError as exc:
            logger.error("Failed to export project '{}': {}", project.title, exc)
            self._notify(f"Failed to export project '{project.title}'", level="error")
            return None
        self._notify(f"Project exported to {path}")
        return path

    # ------------------------------------------------------------------
    # Settings and lifecycle
    # ------------------------------------------------------------------
    def update_settings(self, **changes: Any) -> Settings:
        """Validate ``changes`` against :class:`Settings` and save them."""
        merged = self.settings.model_dump()
        merged.update(changes)
        self.settings = Settings.model_validate(merged)
        self._persist_settings()
        return self.settings

    def flush(self) -> bool:
        return self.autosave.save_now()

    def close(self) -> None:
        """Flush pending edits, discard a running flow and store settings."""
        if self._closed:
            return
        self._closed = True
        self.autosave.close()
        if self.flow_session is not None:
            self.flow_session.close()
            self.flow_session = None
        self.settings.last_opened_composition = self.registry.active_id
        self._persist_settings()
        logger.debug("Workspace closed")
        if self._file_sink_id is not None:
            logger.remove(self._file_sink_id)
            self._file_sink_id = None

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _setup_logging_sink(self) -> None:
        """Persist workspace logs to a rotating file under the store root."""

        log_dir = self.store.root / "logs"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            self._file_sink_id = logger.add(
                log_dir / "abbey.log",
                rotation="5 MB",
                retention=5,
                serialize=True,
                level=self.config.logging_level.upper(),
            )
        except OSError as exc:
            logger.warning("Failed to initialise file log sink: {}", exc)
            self._file_sink_id = None

    def _load_collection(self, kind: StoreKind) -> list[Any]:
        try:
            return self.store.load(kind)
        except DecodeError as exc:
            logger.error("Failed to load {}: {}", kind.value, exc)
            self._notify(f"Stored {kind.value} could not be read; starting empty", level="error")
            return []

    def _flush_compositions(self) -> None:
        self.store.save(StoreKind.COMPOSITIONS, self.registry.snapshot())

    def _persist_compositions(self) -> bool:
        # supersedes any pending debounced save
        return self.autosave.save_now()

    def _persist_folders(self) -> bool:
        return self._persist(StoreKind.FOLDERS, self.registry.folder_snapshot())

    def _persist_projects(self) -> bool:
        return self._persist(StoreKind.PROJECTS, self.projects.snapshot())

    def _project_change(self, changed: bool) -> bool:
        if not changed:
            return False
        return self._persist_projects()

    def _persist(self, kind: StoreKind, items: list[Any]) -> bool:
        try:
            self.store.save(kind, items)
        except PersistenceError as exc:
            logger.error("Failed to save {}: {}", kind.value, exc)
            self._notify(f"Failed to save {kind.value}", level="error")
            return False
        return True

    def _persist_settings(self) -> bool:
        try:
            self.store.save_settings(self.settings)
        except PersistenceError as exc:
            logger.error("Failed to save settings: {}", exc)
            self._notify("Failed to save settings", level="error")
            return False
        return True

    def _on_autosave_error(self, exc: PersistenceError) -> None:
        self._notify("Failed to save compositions", level="error")

    def _notify(self, message: str, *, level: str = "info") -> None:
        self.notifications.emit(Notification(message=message, level=level))


__all__ = ["Notification", "Workspace"]
