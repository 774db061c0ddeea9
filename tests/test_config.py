from __future__ import annotations

import json
from pathlib import Path

import pytest

from translation_core import config
from translation_core.config import ProviderConfig, load_config, save_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        config.APP_ID_ENV,
        config.SECRET_KEY_ENV,
        config.BASE_URL_ENV,
        config.HISTORY_DB_ENV,
    ):
        monkeypatch.delenv(name, raising=False)


def test_config_path_follows_xdg_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert config.config_path() == tmp_path / "translator" / "provider_config.json"


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    loaded = load_config(tmp_path / "absent.json")

    assert loaded == ProviderConfig()
    assert loaded.is_configured is False


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "provider_config.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_config(path) == ProviderConfig()


def test_values_are_parsed_and_invalid_ones_ignored(tmp_path: Path) -> None:
    path = tmp_path / "provider_config.json"
    path.write_text(
        json.dumps(
            {
                "app_id": " 20240101 ",
                "secret_key": "secret",
                "timeout_seconds": -5,
                "save_history": "yes",
                "history_db_path": str(tmp_path / "history.db"),
            }
        ),
        encoding="utf-8",
    )

    loaded = load_config(path)

    assert loaded.app_id == "20240101"
    assert loaded.is_configured is True
    assert loaded.timeout_seconds == ProviderConfig().timeout_seconds
    assert loaded.save_history is True
    assert loaded.history_db_path == tmp_path / "history.db"


def test_environment_overrides_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "provider_config.json"
    save_config(ProviderConfig(app_id="from-file", secret_key="file-secret"), path)
    monkeypatch.setenv(config.APP_ID_ENV, "from-env")
    monkeypatch.setenv(config.HISTORY_DB_ENV, str(tmp_path / "env.db"))

    loaded = load_config(path)

    assert loaded.app_id == "from-env"
    assert loaded.secret_key == "file-secret"
    assert loaded.history_db_path == tmp_path / "env.db"


def test_save_then_load_preserves_values(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "provider_config.json"
    original = ProviderConfig(
        app_id="app",
        secret_key="secret",
        base_url="https://example.test/api",
        timeout_seconds=12.5,
        save_history=False,
        history_db_path=tmp_path / "history.db",
    )

    save_config(original, path)

    assert load_config(path) == original


def test_summary_never_includes_secret() -> None:
    summary = ProviderConfig(app_id="2024010112345", secret_key="hunter2").summary()

    assert "hunter2" not in summary
    assert "20240101..." in summary
    assert "12345" not in summary
