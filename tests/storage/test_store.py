from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from abbey.config import AppConfig
from abbey.storage import (
    Composition,
    DecodeError,
    Flow,
    Folder,
    Note,
    NotFoundError,
    PersistenceStore,
    Project,
    Settings,
    StoreKind,
    WriteError,
    resolve_root,
    sanitize_filename,
)


def _composition(title: str, content: str, **extra) -> Composition:
    composition = Composition.create(title=title, content=content)
    return composition.model_copy(update=extra)


def test_layout_is_created(store: PersistenceStore, data_root: Path) -> None:
    for name in ("compositions", "flows", "projects"):
        assert (data_root / name).is_dir()
    assert store.snapshot_path(StoreKind.FOLDERS) == data_root / "folders.json"


def test_missing_snapshots_load_empty(store: PersistenceStore) -> None:
    for kind in (StoreKind.COMPOSITIONS, StoreKind.FOLDERS, StoreKind.FLOWS, StoreKind.PROJECTS):
        assert store.load(kind) == []
    assert store.load_settings() == Settings()


def test_compositions_round_trip(store: PersistenceStore) -> None:
    created = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    first = Composition(
        title="Essay",
        content="# Essay\n\nSome **bold** text",
        notes=[Note(content="check facts", created_at=created)],
        created_at=created,
        updated_at=created + timedelta(minutes=5),
        tags=["draft"],
        folder_id="folder-1",
    )
    first.refresh_word_count()
    second = _composition("Archived", "old words", archived=True)

    store.save(StoreKind.COMPOSITIONS, [first, second])
    loaded = store.load(StoreKind.COMPOSITIONS)

    assert loaded == [first, second]
    assert loaded[0].updated_at == created + timedelta(minutes=5)
    assert loaded[0].word_count == 4


def test_save_replaces_whole_collection(store: PersistenceStore) -> None:
    store.save(StoreKind.FOLDERS, [Folder(name="A"), Folder(name="B")])
    store.save(StoreKind.FOLDERS, [Folder(name="C")])

    assert [folder.name for folder in store.load(StoreKind.FOLDERS)] == ["C"]
    leftovers = [p for p in store.root.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_malformed_snapshot_raises_decode_error(store: PersistenceStore) -> None:
    store.snapshot_path(StoreKind.PROJECTS).write_text("{not json", encoding="utf-8")
    with pytest.raises(DecodeError) as excinfo:
        store.load(StoreKind.PROJECTS)
    assert excinfo.value.path == store.snapshot_path(StoreKind.PROJECTS)

    store.snapshot_path(StoreKind.SETTINGS).write_text('{"font_size": "huge"}', encoding="utf-8")
    with pytest.raises(DecodeError):
        store.load_settings()


def test_settings_round_trip(store: PersistenceStore) -> None:
    settings = Settings(font_size=20, last_opened_composition="abc")
    settings.publishing.endpoint = "https://blog.example.com"
    store.save_settings(settings)
    assert store.load_settings() == settings


def test_settings_is_not_a_collection(store: PersistenceStore) -> None:
    with pytest.raises(ValueError):
        store.load(StoreKind.SETTINGS)


def test_write_failure_raises_write_error(store: PersistenceStore) -> None:
    target = store.snapshot_path(StoreKind.COMPOSITIONS)
    target.mkdir()
    with pytest.raises(WriteError):
        store.save(StoreKind.COMPOSITIONS, [_composition("x", "y")])


def test_append_flow_prepends_and_journals(store: PersistenceStore) -> None:
    older = Flow(content="first session words", duration_minutes=5, actual_duration_seconds=300)
    newer = Flow(content="second", duration_minutes=10, actual_duration_seconds=42)

    assert store.append_flow(older) is True
    assert store.append_flow(newer) is True

    assert [flow.id for flow in store.load(StoreKind.FLOWS)] == [newer.id, older.id]
    journal = store.journal_path.read_text(encoding="utf-8")
    assert journal.startswith("# Flow Journal\n\nA collection of free-writing sessions.\n")
    assert journal.count("\n---\n") == 2
    assert "(5 min, 3 words)" in journal
    assert "(10 min, 1 words)" in journal
    assert journal.index("first session words") < journal.index("second")


def test_journal_failure_keeps_saved_flow(store: PersistenceStore) -> None:
    store.journal_path.mkdir()
    flow = Flow(content="kept", duration_minutes=5, actual_duration_seconds=10)

    assert store.append_flow(flow) is False
    assert store.load(StoreKind.FLOWS) == [flow]


def test_flow_document_totals(store: PersistenceStore) -> None:
    store.append_flow(Flow(content="one two", duration_minutes=5, actual_duration_seconds=300))
    store.append_flow(Flow(content="three", duration_minutes=20, actual_duration_seconds=3600))

    document = store.flow_document()
    assert document.session_count == 2
    assert document.total_word_count == 3
    assert document.total_time_seconds == 3900
    assert "Total time: 1h 5m" in store.render_flow_document(document)


def test_export_composition(store: PersistenceStore) -> None:
    composition = _composition("Draft: one/two", "Body text")
    composition.notes.append(Note(content="tighten intro"))

    path = store.export_composition(composition)

    assert path == store.root / "compositions" / "Draft_ one_two.md"
    text = path.read_text(encoding="utf-8")
    assert text.startswith("# Draft: one/two\n\nBody text\n")
    assert "## Notes" in text
    assert "- tighten intro" in text


def test_export_project_in_publication_order(store: PersistenceStore) -> None:
    first = _composition("Chapter One", "It began.")
    second = _composition("Chapter Two", "It ended.")
    project = Project(title="My Book", description="A short one", composition_ids=[second.id, "gone", first.id])

    path = store.export_project(project, [first, second])

    assert path == store.root / "projects" / "My Book" / "My Book.md"
    text = path.read_text(encoding="utf-8")
    assert text.startswith("# My Book\n\n*A short one*\n")
    assert text.index("## Chapter Two") < text.index("## Chapter One")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("plain", "plain"),
        ('a/b\\c:d*e?f"g<h>i|j', "a_b_c_d_e_f_g_h_i_j"),
        ("  padded  ", "padded"),
        ("   ", "Untitled"),
    ],
)
def test_sanitize_filename(name: str, expected: str) -> None:
    assert sanitize_filename(name) == expected


def test_resolve_root_prefers_configured_path(tmp_path: Path) -> None:
    assert resolve_root(str(tmp_path / "data")) == (tmp_path / "data").resolve()


def test_resolve_root_uses_documents(tmp_path: Path) -> None:
    (tmp_path / "Documents").mkdir()
    assert resolve_root(None, home=tmp_path) == tmp_path / "Documents" / "Abbey"


def test_resolve_root_requires_documents(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        resolve_root(None, home=tmp_path)
    with pytest.raises(NotFoundError):
        resolve_root(None, home=tmp_path / "nobody")


def test_from_config_creates_app_directory(tmp_path: Path) -> None:
    (tmp_path / "Documents").mkdir()
    store = PersistenceStore.from_config(AppConfig(), home=tmp_path)
    assert store.root == tmp_path / "Documents" / "Abbey"
    assert (store.root / "flows").is_dir()
