from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from fasthash.errors import ConfigError


CONFIG_KEYS = {"exclude", "algo", "target", "follow_symlinks", "workers"}


class HashAlgorithm(str, Enum):
    BLAKE3 = "blake3"
    XXH3 = "xxh3"
    SHA256 = "sha256"


@dataclass(slots=True)
class IndexConfig:
    root: Path
    state_file: Path
    target: Path | None = None
    excludes: tuple[str, ...] = ()
    algorithm: HashAlgorithm = HashAlgorithm.BLAKE3
    no_write: bool = False
    follow_symlinks: bool = False
    workers: int | None = None
    extra_excluded_files: tuple[Path, ...] = ()


@dataclass(slots=True)
class FileConfig:
    """Defaults read from a JSON config file; command-line values win."""

    excludes: tuple[str, ...] = ()
    algorithm: HashAlgorithm | None = None
    target: Path | None = None
    follow_symlinks: bool | None = None
    workers: int | None = None


def parse_algorithm(value: str) -> HashAlgorithm:
    normalized = (value or "").strip().lower()
    try:
        return HashAlgorithm(normalized)
    except ValueError:
        choices = ", ".join(item.value for item in HashAlgorithm)
        raise ConfigError(f"Unknown hash algorithm {value!r}. Choose one of: {choices}") from None


def load_config_file(path: Path) -> FileConfig:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a JSON object: {path}")

    unknown = sorted(set(data) - CONFIG_KEYS)
    if unknown:
        raise ConfigError(f"Unknown key(s) in {path}: {', '.join(unknown)}")

    return FileConfig(
        excludes=tuple(_expect_str_list(data, "exclude", path)),
        algorithm=parse_algorithm(_expect(data, "algo", str, path)) if "algo" in data else None,
        target=Path(_expect(data, "target", str, path)).expanduser() if "target" in data else None,
        follow_symlinks=_expect(data, "follow_symlinks", bool, path),
        workers=_expect_workers(data, path),
    )


def merge_excludes(file_excludes: tuple[str, ...], cli_excludes: tuple[str, ...]) -> tuple[str, ...]:
    return (*file_excludes, *cli_excludes)


def _expect(data: dict[str, Any], key: str, kind: type, path: Path) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, kind):
        raise ConfigError(f"`{key}` in {path} must be a {kind.__name__}")
    return value


def _expect_str_list(data: dict[str, Any], key: str, path: Path) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"`{key}` in {path} must be a list of strings")
    return value


def _expect_workers(data: dict[str, Any], path: Path) -> int | None:
    value = data.get("workers")
    if value is None:
        return None
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"`workers` in {path} must be a positive integer")
    return value
