"""Authoritative in-memory collection of compositions and folders."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from loguru import logger

from abbey.events import Signal
from abbey.storage.models import Composition, Folder, Note, utcnow

EditFn = Callable[[Composition], None]

_APPEND_SEPARATOR = "\n\n---\n\n"


class CompositionRegistry:
    """Owns the ordered composition list and the single active document.

    The active document is a copy. Every mutation made through it is
    written back into the collection before the call returns, so the list
    never shows stale content. Nothing here touches the disk.
    """

    def __init__(
        self,
        compositions: Iterable[Composition] = (),
        folders: Iterable[Folder] = (),
        *,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._compositions: list[Composition] = [c.model_copy(deep=True) for c in compositions]
        self._folders: list[Folder] = [f.model_copy(deep=True) for f in folders]
        self._active: Composition | None = None
        self._now = now
        self.changes: Signal[list[Composition]] = Signal("registry.changes")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def active(self) -> Composition | None:
        return self._active.model_copy(deep=True) if self._active is not None else None

    @property
    def active_id(self) -> str | None:
        return self._active.id if self._active is not None else None

    @property
    def compositions(self) -> list[Composition]:
        return [c.model_copy(deep=True) for c in self._compositions]

    @property
    def folders(self) -> list[Folder]:
        return [f.model_copy(deep=True) for f in self._folders]

    def get(self, composition_id: str) -> Composition | None:
        index = self._index_of(composition_id)
        return self._compositions[index].model_copy(deep=True) if index is not None else None

    def get_folder(self, folder_id: str) -> Folder | None:
        folder = self._find_folder(folder_id)
        return folder.model_copy(deep=True) if folder is not None else None

    def visible(self) -> list[Composition]:
        return [c.model_copy(deep=True) for c in self._compositions if not c.archived]

    def archived(self) -> list[Composition]:
        return [c.model_copy(deep=True) for c in self._compositions if c.archived]

    def in_folder(self, folder_id: str | None) -> list[Composition]:
        return [
            c.model_copy(deep=True)
            for c in self._compositions
            if not c.archived and c.folder_id == folder_id
        ]

    def snapshot(self) -> list[Composition]:
        """The complete ordered collection, ready for a whole-collection save."""
        self._sync_active()
        return self.compositions

    def folder_snapshot(self) -> list[Folder]:
        return self.folders

    # ------------------------------------------------------------------
    # Active document
    # ------------------------------------------------------------------
    def open(self, composition_id: str) -> bool:
        """Make ``composition_id`` active. Unknown ids leave everything untouched."""
        index = self._index_of(composition_id)
        if index is None:
            logger.debug("Ignoring open of unknown composition {}", composition_id)
            return False
        self._sync_active()
        self._active = self._compositions[index].model_copy(deep=True)
        return True

    def close(self) -> None:
        self._sync_active()
        self._active = None

    def mutate_active(self, edit_fn: EditFn) -> Composition | None:
        """Apply ``edit_fn`` to the active document and sync it into the collection."""
        if self._active is None:
            return None
        # a failing edit leaves the active document untouched
        draft = self._active.model_copy(deep=True)
        edit_fn(draft)
        draft.refresh_word_count()
        draft.touch(self._now())
        self._active = draft
        self._sync_active()
        self._emit_changes()
        return self._active.model_copy(deep=True)

    def apply_editor_change(
        self,
        *,
        title: str | None = None,
        content: str | None = None,
        notes: list[Note] | None = None,
    ) -> Composition | None:
        """Apply a ``(title, content, notes)`` event from the editor surface."""

        def _edit(composition: Composition) -> None:
            if title is not None:
                composition.title = title
            if content is not None:
                composition.content = content
            if notes is not None:
                composition.notes = [note.model_copy() for note in notes]

        return self.mutate_active(_edit)

    def add_note(self, text: str) -> Note | None:
        if self._active is None:
            return None
        note = Note(content=text, created_at=self._now())
        self.mutate_active(lambda composition: composition.notes.append(note))
        return note

    def delete_note(self, note_id: str) -> bool:
        if self._active is None or all(note.id != note_id for note in self._active.notes):
            return False

        def _drop(composition: Composition) -> None:
            composition.notes = [note for note in composition.notes if note.id != note_id]

        self.mutate_active(_drop)
        return True

    # ------------------------------------------------------------------
    # Structural changes
    # ------------------------------------------------------------------
    def insert_new(self, *, title: str | None = None, content: str = "") -> Composition:
        """Create a composition at the head of the list and make it active."""
        composition = Composition.create(title=title, content=content, now=self._now())
        self._sync_active()
        self._compositions.insert(0, composition)
        self._active = composition.model_copy(deep=True)
        logger.debug("Created composition {}", composition.id)
        self._emit_changes()
        return composition.model_copy(deep=True)

    def append_text(self, composition_id: str, text: str) -> bool:
        def _append(composition: Composition) -> None:
            if composition.content:
                composition.content += _APPEND_SEPARATOR
            composition.content += text

        return self._apply(composition_id, _append)

    def archive_active(self) -> Composition | None:
        """Archive the active document and empty the active slot."""
        if self._active is None:
            return None
        archived_id = self._active.id
        self._apply(archived_id, lambda composition: setattr(composition, "archived", True))
        self._active = None
        return self.get(archived_id)

    def archive(self, composition_id: str) -> bool:
        if composition_id == self.active_id:
            return self.archive_active() is not None
        return self._apply(composition_id, lambda composition: setattr(composition, "archived", True))

    def restore(self, composition_id: str) -> bool:
        return self._apply(composition_id, lambda composition: setattr(composition, "archived", False))

    def move_to_folder(self, composition_id: str, folder_id: str | None) -> bool:
        if folder_id is not None and self._find_folder(folder_id) is None:
            raise ValueError(f"Unknown folder '{folder_id}'")
        return self._apply(composition_id, lambda composition: setattr(composition, "folder_id", folder_id))

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------
    def create_folder(self, name: str) -> Folder:
        name = name.strip()
        if not name:
            raise ValueError("Folder name must not be empty")
        folder = Folder(name=name, created_at=self._now())
        self._folders.append(folder)
        self._emit_changes()
        return folder.model_copy()

    def rename_folder(self, folder_id: str, name: str) -> bool:
        folder = self._find_folder(folder_id)
        name = name.strip()
        if folder is None or not name:
            return False
        folder.name = name
        self._emit_changes()
        return True

    def toggle_folder(self, folder_id: str) -> bool | None:
        """Flip the expanded flag; returns the new state or ``None`` for unknown folders."""
        folder = self._find_folder(folder_id)
        if folder is None:
            return None
        folder.expanded = not folder.expanded
        self._emit_changes()
        return folder.expanded

    def delete_folder(self, folder_id: str) -> list[str]:
        """Remove a folder and detach its members; returns the ids that were detached."""
        if self._find_folder(folder_id) is None:
            return []
        moment = self._now()
        detached: list[str] = []
        if self._active is not None and self._active.folder_id == folder_id:
            self._active.folder_id = None
            self._active.touch(moment)
            self._sync_active()
            detached.append(self._active.id)
        for composition in self._compositions:
            if composition.folder_id == folder_id:
                composition.folder_id = None
                composition.touch(moment)
                detached.append(composition.id)
        self._folders = [folder for folder in self._folders if folder.id != folder_id]
        logger.debug("Deleted folder {}; detached {} composition(s)", folder_id, len(detached))
        self._emit_changes()
        return detached

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _index_of(self, composition_id: str) -> int | None:
        for index, composition in enumerate(self._compositions):
            if composition.id == composition_id:
                return index
        return None

    def _find_folder(self, folder_id: str) -> Folder | None:
        return next((folder for folder in self._folders if folder.id == folder_id), None)

    def _sync_active(self) -> None:
        if self._active is None:
            return
        index = self._index_of(self._active.id)
        if index is not None:
            self._compositions[index] = self._active.model_copy(deep=True)

    def _apply(self, composition_id: str, edit_fn: EditFn) -> bool:
        """Route a change through the active copy when it targets the active document."""
        if composition_id == self.active_id:
            return self.mutate_active(edit_fn) is not None
        index = self._index_of(composition_id)
        if index is None:
            return False
        composition = self._compositions[index].model_copy(deep=True)
        edit_fn(composition)
        composition.refresh_word_count()
        composition.touch(self._now())
        self._compositions[index] = composition
        self._emit_changes()
        return True

    def _emit_changes(self) -> None:
        self.changes.emit(self.compositions)


__all__ = ["CompositionRegistry", "EditFn"]
