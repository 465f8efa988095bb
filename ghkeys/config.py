from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml

from ghkeys.domain.exceptions import ConfigError
from ghkeys.domain.models import AccountSpec
from ghkeys.infra.http.github_client import DEFAULT_API_URL
from ghkeys.loggingSetup import mapLogLevel

DEFAULT_CONFIG_PATH = "config.yml"
ENV_PREFIX = "GHKEYS_"


@dataclass(frozen=True)
class Settings:
    # API
    github_token: str | None = None
    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = 20.0
    retries: int = 0
    retry_backoff_seconds: float = 0.5
    page_size: int = 100
    max_pages: int | None = None
    max_concurrency: int | None = None

    # Paths / logging
    log_dir: str | None = None
    log_level: str = "WARN"
    report_dir: str | None = None


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    accounts: tuple[AccountSpec, ...]
    sources_used: list[str]


def _read_yaml_config(path: Path) -> dict:
    if not path.exists() or not path.is_file():
        raise ConfigError(f"Config file not found: {path}", path=str(path))
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Config file is not readable: {exc}", path=str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config: {exc}", path=str(path)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping", path=str(path))
    return data


def _env_get(name: str) -> str | None:
    v = os.getenv(ENV_PREFIX + name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parse_int(v: Any) -> int | None:
    if v is None:
        return None
    if isinstance(v, (bool, float)):
        raise ValueError(f"Invalid integer value: {v}")
    return int(v)


def parse_float(v: Any) -> float | None:
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError(f"Invalid number value: {v}")
    return float(v)


def parse_str(v: Any) -> str | None:
    if v is None:
        return None
    return str(v)


_FIELDS: dict[str, Callable[[Any], Any]] = {
    "github_token": parse_str,
    "api_url": parse_str,
    "timeout_seconds": parse_float,
    "retries": parse_int,
    "retry_backoff_seconds": parse_float,
    "page_size": parse_int,
    "max_pages": parse_int,
    "max_concurrency": parse_int,
    "log_dir": parse_str,
    "log_level": parse_str,
    "report_dir": parse_str,
}


def _string_list(value: Any, where: str, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"{where} must be a list", path=path)
    items: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"{where} must contain non-empty strings", path=path)
        items.append(item.strip())
    return tuple(dict.fromkeys(items))


def parse_accounts(raw: Any, path: str) -> tuple[AccountSpec, ...]:
    """
    Назначение:
        Разбор секции users конфигурации в AccountSpec.

    Контракт:
        - users: список объектов {username, github_users, github_teams}.
        - username обязателен и уникален.
        - Форма идентификаторов команд здесь не проверяется:
          неверная форма - ошибка разрешения конкретной команды.
    """
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("'users' must be a list", path=path)

    accounts: list[AccountSpec] = []
    seen: set[str] = set()
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"users[{idx}] must be a mapping", path=path)
        name = entry.get("username")
        if not isinstance(name, str) or not name.strip():
            raise ConfigError(f"users[{idx}].username is required", path=path)
        name = name.strip()
        if name in seen:
            raise ConfigError(f"Duplicate username '{name}' in users", path=path)
        seen.add(name)
        accounts.append(
            AccountSpec(
                name=name,
                declared_users=_string_list(entry.get("github_users"), f"users[{idx}].github_users", path),
                declared_teams=_string_list(entry.get("github_teams"), f"users[{idx}].github_teams", path),
            )
        )
    return tuple(accounts)


def load_settings(config_path: str | None, cli_overrides: dict) -> LoadedSettings:
    """
    Назначение:
        Загрузка настроек и учётных записей.

    Priority: CLI > ENV > config > defaults

    Ошибки:
        ConfigError - файл отсутствует/не читается, неверный YAML,
        неверные типы значений.
    """
    sources: list[str] = []
    path = config_path or DEFAULT_CONFIG_PATH

    # 1) config file
    cfg = _read_yaml_config(Path(path))
    if cfg:
        sources.append("config")

    # 2) env
    env = {name: _env_get(name.upper()) for name in _FIELDS}
    if any(v is not None for v in env.values()):
        sources.append("env")

    # 3) CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")

    defaults = Settings()
    merged: dict[str, Any] = {}
    for name, parse in _FIELDS.items():
        value = getattr(defaults, name)
        try:
            if cfg.get(name) is not None:
                value = parse(cfg[name])
            if env[name] is not None:
                value = parse(env[name])
            if cli_overrides.get(name) is not None:
                value = parse(cli_overrides[name])
        except ValueError as exc:
            raise ConfigError(f"Invalid value for '{name}': {exc}", path=path) from exc
        merged[name] = value

    settings = Settings(**merged)
    _validate_settings(settings, path)

    return LoadedSettings(
        settings=settings,
        accounts=parse_accounts(cfg.get("users"), path),
        sources_used=sources,
    )


def _validate_settings(settings: Settings, path: str) -> None:
    try:
        mapLogLevel(settings.log_level)
    except ValueError as exc:
        raise ConfigError(str(exc), path=path) from exc
    if settings.page_size < 1 or settings.page_size > 100:
        raise ConfigError("page_size must be between 1 and 100", path=path)
    if settings.retries < 0:
        raise ConfigError("retries must be >= 0", path=path)
    if settings.timeout_seconds <= 0:
        raise ConfigError("timeout_seconds must be > 0", path=path)
    if settings.max_pages is not None and settings.max_pages < 1:
        raise ConfigError("max_pages must be >= 1", path=path)
    if settings.max_concurrency is not None and settings.max_concurrency < 1:
        raise ConfigError("max_concurrency must be >= 1", path=path)


__all__ = ["DEFAULT_CONFIG_PATH", "LoadedSettings", "Settings", "load_settings", "parse_accounts"]
