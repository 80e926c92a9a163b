"""Entities persisted as whole-collection snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from abbey.text import word_count as count_words


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def default_title(moment: datetime) -> str:
    """Title given to a fresh composition, derived from its creation time."""
    return moment.astimezone().strftime("%Y-%m-%d %H:%M")


class Note(BaseModel):
    """A short note attached to a composition."""

    id: str = Field(default_factory=new_id)
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class Composition(BaseModel):
    """An essay, story or other written piece."""

    id: str = Field(default_factory=new_id)
    title: str = ""
    content: str = ""
    notes: list[Note] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    archived: bool = False
    word_count: int = 0
    tags: list[str] = Field(default_factory=list)
    folder_id: str | None = None

    @classmethod
    def create(cls, *, title: str | None = None, content: str = "", now: datetime | None = None) -> "Composition":
        moment = now or utcnow()
        composition = cls(
            title=title if title is not None else default_title(moment),
            content=content,
            created_at=moment,
            updated_at=moment,
        )
        composition.refresh_word_count()
        return composition

    def refresh_word_count(self) -> int:
        self.word_count = count_words(self.content)
        return self.word_count

    def touch(self, now: datetime | None = None) -> None:
        """Refresh ``updated_at`` without ever moving it backwards."""
        moment = now or utcnow()
        if moment > self.updated_at:
            self.updated_at = moment

    @property
    def display_title(self) -> str:
        return self.title or "Untitled"


class Folder(BaseModel):
    """A named group of compositions in the sidebar."""

    id: str = Field(default_factory=new_id)
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    expanded: bool = True


class Project(BaseModel):
    """An ordered selection of compositions forming a book or anthology."""

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    composition_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self, now: datetime | None = None) -> None:
        moment = now or utcnow()
        if moment > self.updated_at:
            self.updated_at = moment

    def add_composition(self, composition_id: str) -> bool:
        if composition_id in self.composition_ids:
            return False
        self.composition_ids.append(composition_id)
        self.touch()
        return True

    def remove_composition(self, composition_id: str) -> bool:
        if composition_id not in self.composition_ids:
            return False
        self.composition_ids = [cid for cid in self.composition_ids if cid != composition_id]
        self.touch()
        return True

    def move_composition(self, from_index: int, to_index: int) -> bool:
        """Move the entry at ``from_index`` so it ends up at ``to_index``."""
        size = len(self.composition_ids)
        if not (0 <= from_index < size) or not (0 <= to_index < size) or from_index == to_index:
            return False
        item = self.composition_ids.pop(from_index)
        self.composition_ids.insert(to_index, item)
        self.touch()
        return True

    def reorder(self, new_order: list[str]) -> None:
        if len(set(new_order)) != len(new_order):
            raise ValueError("A composition may appear only once in a project")
        self.composition_ids = list(new_order)
        self.touch()


class Flow(BaseModel):
    """One completed free-writing session. Never modified after it is saved."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    content: str = ""
    duration_minutes: int
    actual_duration_seconds: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def word_count(self) -> int:
        return count_words(self.content)


class PublishingSettings(BaseModel):
    """Endpoint details for the external publishing collaborator."""

    endpoint: str = ""
    api_key: str = ""
    blog_id: str | None = None


class Settings(BaseModel):
    """Process-wide preferences, stored as a single snapshot."""

    theme: str = "system-light"
    font_size: int = 18
    line_height: float = 1.8
    publishing: PublishingSettings = Field(default_factory=PublishingSettings)
    last_opened_composition: str | None = None


@dataclass(slots=True)
class FlowDocument:
    """All flows folded into one view. Derived on demand, never stored."""

    flows: list[Flow] = field(default_factory=list)

    @property
    def session_count(self) -> int:
        return len(self.flows)

    @property
    def total_word_count(self) -> int:
        return sum(flow.word_count for flow in self.flows)

    @property
    def total_time_seconds(self) -> int:
        return sum(flow.actual_duration_seconds for flow in self.flows)


__all__ = [
    "Composition",
    "Flow",
    "FlowDocument",
    "Folder",
    "Note",
    "Project",
    "PublishingSettings",
    "Settings",
    "default_title",
    "new_id",
    "utcnow",
]
