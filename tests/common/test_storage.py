from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from regsync.common import storage


def test_get_data_dir_prefers_explicit_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("REGSYNC_DATA_DIR", str(custom))
    result = storage.get_data_dir()

    assert result == custom.resolve()


def test_get_data_dir_falls_back_to_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("REGSYNC_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))

    result = storage.get_data_dir()

    assert result == (tmp_path / "xdg" / storage.APP_DIR_NAME).resolve()


def test_get_cache_path_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REGSYNC_DATA_DIR", str(tmp_path / "data-dir"))

    path = storage.get_cache_path()

    assert path == (tmp_path / "data-dir" / storage.CACHE_FILENAME).resolve()
    assert path.parent.exists()
