"""Pytest helpers for path configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from abbey.config import AppConfig  # noqa: E402
from abbey.storage import PersistenceStore  # noqa: E402

from tests.utils import ManualTimers  # noqa: E402


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    root = tmp_path / "abbey"
    root.mkdir()
    return root


@pytest.fixture
def app_config(data_root: Path) -> AppConfig:
    return AppConfig(data_root=str(data_root))


@pytest.fixture
def store(data_root: Path) -> PersistenceStore:
    return PersistenceStore(data_root)
