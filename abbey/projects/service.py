"""Ordered collection of projects."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from loguru import logger

from abbey.events import Signal
from abbey.storage.models import Project, utcnow


class ProjectBook:
    """Keeps projects newest-first and edits their composition order."""

    def __init__(self, projects: Iterable[Project] = (), *, now: Callable[[], datetime] = utcnow) -> None:
        self._projects: list[Project] = [p.model_copy(deep=True) for p in projects]
        self._now = now
        self.changes: Signal[list[Project]] = Signal("projects.changes")

    @property
    def projects(self) -> list[Project]:
        return [p.model_copy(deep=True) for p in self._projects]

    def snapshot(self) -> list[Project]:
        return self.projects

    def get(self, project_id: str) -> Project | None:
        project = self._find(project_id)
        return project.model_copy(deep=True) if project is not None else None

    def create(self, title: str, description: str = "") -> Project:
        title = title.strip()
        if not title:
            raise ValueError("Project title must not be empty")
        moment = self._now()
        project = Project(title=title, description=description, created_at=moment, updated_at=moment)
        self._projects.insert(0, project)
        logger.debug("Created project {} '{}'", project.id, title)
        self._emit()
        return project.model_copy(deep=True)

    def rename(self, project_id: str, title: str) -> bool:
        title = title.strip()
        if not title:
            return False

        def _rename(project: Project) -> bool:
            project.title = title
            return True

        return self._edit(project_id, _rename)

    def describe(self, project_id: str, description: str) -> bool:
        def _describe(project: Project) -> bool:
            project.description = description
            return True

        return self._edit(project_id, _describe)

    def add_composition(self, project_id: str, composition_id: str) -> bool:
        return self._edit(project_id, lambda project: project.add_composition(composition_id))

    def remove_composition(self, project_id: str, composition_id: str) -> bool:
        return self._edit(project_id, lambda project: project.remove_composition(composition_id))

    def move_composition(self, project_id: str, from_index: int, to_index: int) -> bool:
        return self._edit(project_id, lambda project: project.move_composition(from_index, to_index))

    def reorder(self, project_id: str, new_order: list[str]) -> bool:
        def _reorder(project: Project) -> bool:
            project.reorder(new_order)
            return True

        return self._edit(project_id, _reorder)

    def delete(self, project_id: str) -> bool:
        if self._find(project_id) is None:
            return False
        self._projects = [p for p in self._projects if p.id != project_id]
        logger.debug("Deleted project {}", project_id)
        self._emit()
        return True

    def _find(self, project_id: str) -> Project | None:
        return next((p for p in self._projects if p.id == project_id), None)

    def _edit(self, project_id: str, edit_fn: Callable[[Project], bool]) -> bool:
        project = self._find(project_id)
        if project is None:
            return False
        if not edit_fn(project):
            return False
        project.touch(self._now())
        self._emit()
        return True

    def _emit(self) -> None:
        self.changes.emit(self.projects)


__all__ = ["ProjectBook"]
