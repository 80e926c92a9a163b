from __future__ import annotations

import json
from pathlib import Path

from abbey.cli import main
from tests.utils import logger_to_stderr


def test_config_check_json_success(capsys, tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        f'data_root = "{tmp_path.as_posix()}"\n\n[autosave]\ndelay_seconds = 1.5\n',
        encoding="utf-8",
    )

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "config", "check", "--format", "json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "ok"
    assert payload["warnings"] == []
    assert payload["config_path"].endswith("config.toml")


def test_config_check_missing_file(capsys, tmp_path: Path) -> None:
    missing_path = tmp_path / "absent.toml"

    with logger_to_stderr():
        exit_code = main(["--config", str(missing_path), "config", "check"])

    assert exit_code == 2
    assert "missing_file" in capsys.readouterr().err


def test_config_check_validation_error(capsys, tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[flow]\nspeed = 3\n", encoding="utf-8")

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "config", "check"])

    assert exit_code == 3
    err = capsys.readouterr().err
    assert "validation_error" in err
    assert "Extra inputs are not permitted" in err


def test_config_check_reports_warnings(capsys, tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("logging_level = \"INFO\"\n", encoding="utf-8")

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "config", "check"])

    assert exit_code == 0
    assert "'data_root' is not set" in capsys.readouterr().err


def test_config_explain_json(capsys) -> None:
    exit_code = main(["config", "explain", "--format", "json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    names = {field["name"] for field in payload["fields"]}
    assert {"data_root", "autosave.enabled", "flow.default_minutes", "storage.export_on_save"} <= names
    assert set(payload["sections"]) == {"general", "autosave", "flow", "storage"}
