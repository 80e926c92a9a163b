from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from abbey.cli import main
from abbey.storage import Flow, PersistenceStore, StoreKind
from tests.utils import logger_to_stderr, write_config


@pytest.fixture
def config_file(tmp_path: Path, data_root: Path) -> Path:
    return write_config(tmp_path / "config.toml", data_root)


def _run(config_file: Path, *args: str) -> int:
    return main(["--config", str(config_file), *args])


def _new(capsys, config_file: Path, *args: str) -> str:
    assert _run(config_file, "new", *args) == 0
    return capsys.readouterr().out.strip()


def test_new_list_show_edit(capsys, config_file: Path, data_root: Path) -> None:
    composition_id = _new(capsys, config_file, "--title", "Morning Pages", "--content", "Hello world")

    assert _run(config_file, "list") == 0
    listing = capsys.readouterr().out
    assert "Morning Pages" in listing
    assert "(2 words)" in listing
    assert composition_id[:8] in listing

    assert _run(config_file, "edit", composition_id[:8], "--append", "Second paragraph") == 0
    assert _run(config_file, "show", composition_id) == 0
    shown = capsys.readouterr().out
    assert shown.startswith("# Morning Pages\n\nHello world\n\nSecond paragraph\n")

    stored = PersistenceStore(data_root).load(StoreKind.COMPOSITIONS)
    assert stored[0].word_count == 4


def test_unknown_reference_fails(capsys, config_file: Path) -> None:
    with logger_to_stderr():
        exit_code = _run(config_file, "show", "does-not-exist")
    assert exit_code == 1
    assert "No composition matches 'does-not-exist'" in capsys.readouterr().err


def test_notes(capsys, config_file: Path) -> None:
    composition_id = _new(capsys, config_file, "--title", "Noted")

    assert _run(config_file, "note", "add", composition_id, "check the ending") == 0
    note_id = capsys.readouterr().out.strip()
    assert _run(config_file, "show", composition_id) == 0
    assert "- check the ending" in capsys.readouterr().out

    assert _run(config_file, "note", "delete", composition_id, note_id[:6]) == 0
    assert _run(config_file, "show", composition_id) == 0
    assert "## Notes" not in capsys.readouterr().out


def test_folders_and_archive(capsys, config_file: Path) -> None:
    composition_id = _new(capsys, config_file, "--title", "Filed")
    assert _run(config_file, "folder", "create", "Essays") == 0
    folder_id = capsys.readouterr().out.strip()

    assert _run(config_file, "move", composition_id, "--folder", folder_id) == 0
    assert _run(config_file, "list", "--folder", folder_id) == 0
    assert "Filed" in capsys.readouterr().out

    assert _run(config_file, "folder", "toggle", folder_id) == 0
    assert capsys.readouterr().out.strip() == "collapsed"
    assert _run(config_file, "folder", "list") == 0
    assert "+ " in capsys.readouterr().out

    assert _run(config_file, "folder", "delete", folder_id) == 0
    assert _run(config_file, "folder", "list") == 0
    assert capsys.readouterr().out == ""

    assert _run(config_file, "archive", composition_id) == 0
    assert _run(config_file, "list") == 0
    assert "Filed" not in capsys.readouterr().out
    assert _run(config_file, "list", "--archived") == 0
    assert "Filed" in capsys.readouterr().out
    assert _run(config_file, "restore", composition_id) == 0
    assert _run(config_file, "list") == 0
    assert "Filed" in capsys.readouterr().out


def test_export(capsys, config_file: Path, data_root: Path) -> None:
    composition_id = _new(capsys, config_file, "--title", "Out", "--content", "text")
    assert _run(config_file, "export", composition_id) == 0
    assert Path(capsys.readouterr().out.strip()) == data_root / "compositions" / "Out.md"


def test_projects(capsys, config_file: Path, data_root: Path) -> None:
    first = _new(capsys, config_file, "--title", "Chapter One", "--content", "begin")
    second = _new(capsys, config_file, "--title", "Chapter Two", "--content", "end")
    assert _run(config_file, "project", "create", "Novel", "--description", "A draft") == 0
    project_id = capsys.readouterr().out.strip()

    assert _run(config_file, "project", "add", project_id, first) == 0
    assert _run(config_file, "project", "add", project_id, second) == 0
    assert _run(config_file, "project", "move", project_id, "1", "0") == 0
    assert _run(config_file, "project", "show", project_id) == 0
    shown = capsys.readouterr().out
    assert shown.index("Chapter Two") < shown.index("Chapter One")

    assert _run(config_file, "project", "rename", project_id, "Saga") == 0
    assert _run(config_file, "project", "list") == 0
    assert "Saga  (2 compositions)" in capsys.readouterr().out

    assert _run(config_file, "project", "export", project_id) == 0
    assert Path(capsys.readouterr().out.strip()) == data_root / "projects" / "Saga" / "Saga.md"

    assert _run(config_file, "project", "remove", project_id, first) == 0
    assert _run(config_file, "project", "delete", project_id) == 0
    assert _run(config_file, "project", "list") == 0
    assert capsys.readouterr().out == ""


def test_flow_history_and_reuse(capsys, config_file: Path, data_root: Path) -> None:
    flow = Flow(content="free writing words", duration_minutes=5, actual_duration_seconds=300)
    PersistenceStore(data_root).append_flow(flow)

    assert _run(config_file, "flows") == 0
    assert "5 min, 3 words" in capsys.readouterr().out
    assert _run(config_file, "journal") == 0
    assert "Total sessions: 1 | Total words: 3 | Total time: 5m" in capsys.readouterr().out

    assert _run(config_file, "use-flow", flow.id[:8]) == 0
    composition_id = capsys.readouterr().out.strip()
    assert _run(config_file, "show", composition_id) == 0
    assert "free writing words" in capsys.readouterr().out


def test_flow_rejects_unconfigured_duration(capsys, config_file: Path) -> None:
    with logger_to_stderr():
        exit_code = _run(config_file, "flow", "--minutes", "7")
    assert exit_code == 1
    assert "Choose one of [5, 10, 15, 20] minutes" in capsys.readouterr().err


def test_settings(capsys, config_file: Path) -> None:
    assert _run(config_file, "settings", "set", "font_size", "20") == 0
    assert _run(config_file, "settings", "set", "publishing.endpoint", "https://blog.example.com") == 0
    assert _run(config_file, "settings", "show") == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown["font_size"] == 20
    assert shown["publishing"]["endpoint"] == "https://blog.example.com"

    with logger_to_stderr():
        assert _run(config_file, "settings", "set", "colour", "red") == 1
        assert _run(config_file, "settings", "set", "font_size", "big") == 1
    err = capsys.readouterr().err
    assert "Unknown setting 'colour'" in err
    assert "Invalid value for 'font_size'" in err


def test_status(capsys, config_file: Path, data_root: Path) -> None:
    _new(capsys, config_file, "--title", "Counted")
    assert _run(config_file, "status") == 0
    out = capsys.readouterr().out
    assert f"Storage root: {data_root.resolve()}" in out
    assert "Compositions: 1 (0 archived)" in out
    assert "Active: Counted" in out


def test_missing_documents_directory(capsys, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    config_file = tmp_path / "config.toml"
    config_file.write_text("", encoding="utf-8")

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "status"])

    assert exit_code == 1
    assert "Cannot open storage" in capsys.readouterr().err


def test_write_reads_lines_from_stdin(capsys, config_file: Path, data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    composition_id = _new(capsys, config_file, "--title", "Live")
    monkeypatch.setattr("sys.stdin", io.StringIO("first line\n:title Live Edit\nsecond line\n:q\nignored\n"))

    assert _run(config_file, "write", composition_id) == 0

    out = capsys.readouterr().out
    assert "Editing 'Live' (0 words)" in out
    stored = PersistenceStore(data_root).load(StoreKind.COMPOSITIONS)
    assert stored[0].title == "Live Edit"
    assert stored[0].content == "first line\nsecond line"


def test_flow_reads_lines_from_stdin(capsys, config_file: Path, data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("one two\n:pause\n:pause\nthree\n:end\n"))

    assert _run(config_file, "flow", "--minutes", "5") == 0

    out = capsys.readouterr().out
    assert "Flow started: 5 minute(s)" in out
    assert "Paused" in out
    assert "Resumed" in out
    stored = PersistenceStore(data_root).load(StoreKind.FLOWS)
    assert len(stored) == 1
    assert stored[0].content == "one two\nthree"
    assert stored[0].duration_minutes == 5
    assert stored[0].word_count == 3


def test_flow_end_of_input_saves_the_session(capsys, config_file: Path, data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("written before the input closed\n"))

    assert _run(config_file, "flow") == 0

    stored = PersistenceStore(data_root).load(StoreKind.FLOWS)
    assert [flow.content for flow in stored] == ["written before the input closed"]
    assert stored[0].duration_minutes == 10
    assert (data_root / "flows" / "Flow Journal.md").exists()
