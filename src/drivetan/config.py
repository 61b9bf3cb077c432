from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
import os

import json
import yaml


DEFAULT_MAX_SIZE = 0
DEFAULT_EXTENSION = ".drivetan.txt"
DEFAULT_MAGIC = "DRIVETAN"


@dataclass(frozen=True, slots=True)
class MirrorConfig:
    source_root: Path
    destination_root: Path
    max_inline_size: int = DEFAULT_MAX_SIZE
    stub_extension: str = DEFAULT_EXTENSION
    magic: str = DEFAULT_MAGIC
    skip_patterns: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


@dataclass(slots=True)
class FileSettings:
    """Defaults read from a ``--config`` file; unset keys stay ``None``."""

    max_size: int | None = None
    extension: str | None = None
    magic: str | None = None
    skip_file: Path | None = None
    skip_patterns: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)


def _as_path(value: Any, field_name: str) -> Path:
    if isinstance(value, Path):
        return value.expanduser()
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string path")
    return Path(value).expanduser()


def _as_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value < 0:
        raise ValueError(f"{field_name} must not be negative")
    return value


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_list_of_strings(value: Any, field_name: str, keep_whitespace: bool = False) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or any(not isinstance(item, str) for item in value):
        raise ValueError(f"{field_name} must be a list of strings")
    if keep_whitespace:
        return [item for item in value if item]
    return [item for item in value if item.strip()]


def _as_extension(value: Any, field_name: str) -> str:
    extension = _as_str(value, field_name)
    if os.sep in extension or (os.altsep and os.altsep in extension):
        raise ValueError(f"{field_name} must not contain a path separator")
    return extension


def _load_raw_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ValueError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    if suffix in {".yml", ".yaml"}:
        loaded = yaml.safe_load(text)
    elif suffix == ".json":
        loaded = json.loads(text)
    else:
        raise ValueError("Config file must be .yaml/.yml or .json")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("Config root must be an object")
    return loaded


def load_file_settings(config_path: Path) -> FileSettings:
    try:
        raw = _load_raw_config(config_path)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"Config file {config_path} is not valid: {exc}") from exc

    settings = FileSettings()
    if raw.get("maxSize") is not None:
        settings.max_size = _as_non_negative_int(raw["maxSize"], "maxSize")
    if raw.get("extension") is not None:
        settings.extension = _as_extension(raw["extension"], "extension")
    if raw.get("magic") is not None:
        settings.magic = _as_str(raw["magic"], "magic")
    if raw.get("skipFile") is not None:
        skip_file = _as_path(raw["skipFile"], "skipFile")
        settings.skip_file = skip_file if skip_file.is_absolute() else config_path.parent / skip_file
    settings.skip_patterns = _as_list_of_strings(raw.get("skipPatterns"), "skipPatterns", keep_whitespace=True)
    settings.excludes = _as_list_of_strings(raw.get("excludes"), "excludes")
    return settings


def build_config(
    source: Any,
    destination: Any,
    max_inline_size: Any = DEFAULT_MAX_SIZE,
    stub_extension: Any = DEFAULT_EXTENSION,
    magic: Any = DEFAULT_MAGIC,
    skip_patterns: Any = None,
    excludes: Any = None,
) -> MirrorConfig:
    return MirrorConfig(
        source_root=_as_path(source, "source").absolute(),
        destination_root=_as_path(destination, "destination").absolute(),
        max_inline_size=_as_non_negative_int(max_inline_size, "max_inline_size"),
        stub_extension=_as_extension(stub_extension, "stub_extension"),
        magic=_as_str(magic, "magic"),
        skip_patterns=tuple(_as_list_of_strings(skip_patterns, "skip_patterns", keep_whitespace=True)),
        excludes=tuple(_as_list_of_strings(excludes, "excludes")),
    )
