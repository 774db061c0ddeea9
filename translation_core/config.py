from __future__ import annotations

from dataclasses import dataclass, replace
import json
import os
from pathlib import Path
from typing import Final

from translation_core.http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from translation_core.mapper import DEFAULT_PROVIDER

CONFIG_DIR_NAME: Final[str] = "translator"
CONFIG_FILE_NAME: Final[str] = "provider_config.json"
APP_ID_ENV: Final[str] = "BAIDU_TRANSLATE_APP_ID"
SECRET_KEY_ENV: Final[str] = "BAIDU_TRANSLATE_SECRET_KEY"
BASE_URL_ENV: Final[str] = "TRANSLATOR_API_BASE_URL"
HISTORY_DB_ENV: Final[str] = "TRANSLATOR_HISTORY_DB"


def default_history_db_path() -> Path:
    return Path.home() / ".local" / "share" / CONFIG_DIR_NAME / "history.sqlite3"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    app_id: str = ""
    secret_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    provider: str = DEFAULT_PROVIDER
    save_history: bool = True
    history_db_path: Path = default_history_db_path()

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id.strip()) and bool(self.secret_key.strip())

    def summary(self) -> str:
        app_id = f"{self.app_id[:8]}..." if self.app_id else "not configured"
        secret = "configured" if self.secret_key else "not configured"
        return (
            f"provider={self.provider} app_id={app_id} secret_key={secret} "
            f"base_url={self.base_url}"
        )


def config_path() -> Path:
    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_home) if xdg_home else Path.home() / ".config"
    return base / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(path: Path | None = None) -> ProviderConfig:
    resolved = path or config_path()
    config = ProviderConfig()
    if resolved.exists():
        try:
            raw_data = resolved.read_text(encoding="utf-8")
            payload: object = json.loads(raw_data)
        except (OSError, json.JSONDecodeError):
            payload = None
        config = _parse_config(payload)
    return _apply_env(config)


def save_config(config: ProviderConfig, path: Path | None = None) -> None:
    resolved = path or config_path()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(_config_to_dict(config), ensure_ascii=True, indent=2)
    resolved.write_text(data, encoding="utf-8")


def _parse_config(payload: object) -> ProviderConfig:
    payload_dict = _get_dict(payload)
    defaults = ProviderConfig()
    if payload_dict is None:
        return defaults
    history_path = _get_str(payload_dict.get("history_db_path"), "")
    return ProviderConfig(
        app_id=_get_str(payload_dict.get("app_id"), defaults.app_id),
        secret_key=_get_str(payload_dict.get("secret_key"), defaults.secret_key),
        base_url=_get_str(payload_dict.get("base_url"), defaults.base_url),
        timeout_seconds=_get_positive_float(
            payload_dict.get("timeout_seconds"), defaults.timeout_seconds
        ),
        provider=_get_str(payload_dict.get("provider"), defaults.provider),
        save_history=_get_bool(payload_dict.get("save_history"), defaults.save_history),
        history_db_path=Path(history_path).expanduser()
        if history_path
        else defaults.history_db_path,
    )


def _apply_env(config: ProviderConfig) -> ProviderConfig:
    app_id = os.environ.get(APP_ID_ENV, "").strip()
    secret_key = os.environ.get(SECRET_KEY_ENV, "").strip()
    base_url = os.environ.get(BASE_URL_ENV, "").strip()
    history_db = os.environ.get(HISTORY_DB_ENV, "").strip()
    if app_id:
        config = replace(config, app_id=app_id)
    if secret_key:
        config = replace(config, secret_key=secret_key)
    if base_url:
        config = replace(config, base_url=base_url)
    if history_db:
        config = replace(config, history_db_path=Path(history_db).expanduser())
    return config


def _config_to_dict(config: ProviderConfig) -> dict[str, object]:
    return {
        "app_id": config.app_id,
        "secret_key": config.secret_key,
        "base_url": config.base_url,
        "timeout_seconds": config.timeout_seconds,
        "provider": config.provider,
        "save_history": config.save_history,
        "history_db_path": str(config.history_db_path),
    }


def _get_dict(value: object) -> dict[str, object] | None:
    if isinstance(value, dict):
        return value
    return None


def _get_str(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _get_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    return default


def _get_positive_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    return default
