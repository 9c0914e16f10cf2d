from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from polyvariant.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "polyvariant.toml"
PYPROJECT_NAME = "pyproject.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def config_section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def project_identity(root: Path | None = None) -> TomlTable:
    """Package name and version from the ``[project]`` table of pyproject.toml."""
    base = root if root is not None else Path.cwd()
    project = config_section(_load_toml(base / PYPROJECT_NAME), "project")
    identity: TomlTable = {}
    for key in ("name", "version"):
        value = project.get(key)
        if isinstance(value, str) and value.strip():
            identity[key] = value.strip()
    return identity


def rule_section(section: TomlTable | None, rule_name: str) -> TomlTable:
    if not isinstance(section, dict):
        return {}
    return config_section(section, rule_name)


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def config_bool(section: TomlTable | None, key: str, default: bool) -> bool:
    if not isinstance(section, dict) or section.get(key) is None:
        return default
    return as_bool(section[key])


def config_value(section: TomlTable | None, key: str, default: TomlValue) -> TomlValue:
    if not isinstance(section, dict):
        return default
    value = section.get(key)
    return default if value is None else value


def config_text(section: TomlTable | None, key: str) -> str | None:
    value = config_value(section, key, None)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"{key} must be a string, got {value!r}")
    text = str(value).strip()
    return text or None


def config_str_list(section: TomlTable | None, key: str) -> tuple[str, ...] | None:
    value = config_value(section, key, None)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} must be a list of strings, got {value!r}")
    return tuple(value)
