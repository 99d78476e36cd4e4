"""Configuration loading, merging and validation.

Sources are merged with precedence project > global > defaults. Missing or
malformed JSON files fall back safely; a merged result that fails validation
raises ``ConfigError`` since that is a programmer/user mistake worth surfacing.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path

from platformdirs import user_config_dir

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "treedeck"
CONFIG_FILENAME = "config.json"
GLOBAL_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
PROJECT_CONFIG_NAMES = (".treedeck.json", "treedeck.config.json")

SORT_FIELDS = ("name", "size", "modified", "type")
SORT_DIRECTIONS = ("asc", "desc")

_CAMEL_ALIASES = {
    "showHidden": "show_hidden",
    "showGitStatus": "show_git_status",
    "showFileSize": "show_file_size",
    "showModifiedTime": "show_modified_time",
    "respectGitignore": "respect_gitignore",
    "customIgnores": "custom_ignores",
    "autoRefresh": "auto_refresh",
    "refreshDebounce": "refresh_debounce_ms",
    "treeIndent": "tree_indent",
    "maxDepth": "max_depth",
    "sortBy": "sort_by",
    "sortDirection": "sort_direction",
    "staleThresholdDays": "stale_threshold_days",
    "mainBranch": "main_branch",
}


@dataclass(frozen=True)
class TreeConfig:
    show_hidden: bool = False
    show_git_status: bool = True
    show_file_size: bool = False
    show_modified_time: bool = False
    respect_gitignore: bool = True
    custom_ignores: tuple[str, ...] = ()
    auto_refresh: bool = True
    refresh_debounce_ms: int = 100
    tree_indent: int = 2
    max_depth: int | None = None
    sort_by: str = "name"
    sort_direction: str = "asc"
    stale_threshold_days: float = 7.0
    main_branch: str = "main"

    @property
    def refresh_debounce_seconds(self) -> float:
        return self.refresh_debounce_ms / 1000.0

    def with_overrides(self, **overrides: object) -> TreeConfig:
        return validate_config({**config_to_dict(self), **overrides})


DEFAULT_CONFIG = TreeConfig()


def config_to_dict(config: TreeConfig) -> dict[str, object]:
    return {item.name: getattr(config, item.name) for item in fields(TreeConfig)}


def normalize_keys(raw: Mapping[str, object]) -> dict[str, object]:
    """Map camelCase keys onto field names and drop unknown keys."""
    known = {item.name for item in fields(TreeConfig)}
    out: dict[str, object] = {}
    for key, value in raw.items():
        name = _CAMEL_ALIASES.get(key, key)
        if name in known:
            out[name] = value
        else:
            logger.debug("ignoring unknown config key %r", key)
    return out


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(raw: Mapping[str, object]) -> TreeConfig:
    """Build a ``TreeConfig`` from merged values, raising on invalid fields."""
    if not isinstance(raw, Mapping):
        raise ConfigError("Invalid config: must be an object")
    values = {**config_to_dict(DEFAULT_CONFIG), **normalize_keys(raw)}
    errors: list[str] = []

    for name in ("show_hidden", "show_git_status", "show_file_size", "show_modified_time", "respect_gitignore", "auto_refresh"):
        if not isinstance(values[name], bool):
            errors.append(f"config.{name} must be a boolean")

    ignores = values["custom_ignores"]
    if isinstance(ignores, (list, tuple)) and all(isinstance(item, str) for item in ignores):
        values["custom_ignores"] = tuple(ignores)
    else:
        errors.append("config.custom_ignores must be a list of strings")

    if not _is_int(values["refresh_debounce_ms"]) or values["refresh_debounce_ms"] < 0:
        errors.append("config.refresh_debounce_ms must be a non-negative integer")
    if not _is_int(values["tree_indent"]) or not 1 <= values["tree_indent"] <= 10:
        errors.append("config.tree_indent must be an integer between 1 and 10")
    max_depth = values["max_depth"]
    if max_depth is not None and (not _is_int(max_depth) or max_depth < 0):
        errors.append("config.max_depth must be null or a non-negative integer")
    if values["sort_by"] not in SORT_FIELDS:
        errors.append(f"config.sort_by must be one of {', '.join(SORT_FIELDS)}")
    if values["sort_direction"] not in SORT_DIRECTIONS:
        errors.append("config.sort_direction must be 'asc' or 'desc'")
    threshold = values["stale_threshold_days"]
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or threshold < 0:
        errors.append("config.stale_threshold_days must be a non-negative number")
    else:
        values["stale_threshold_days"] = float(threshold)
    if not isinstance(values["main_branch"], str) or not values["main_branch"].strip():
        errors.append("config.main_branch must be a non-empty string")

    if errors:
        raise ConfigError("Config validation failed:\n  " + "\n  ".join(errors), errors=errors)
    return TreeConfig(**values)


def read_config_file(path: Path) -> dict[str, object]:
    """Return the JSON object stored at ``path``; ``{}`` when missing or malformed."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning("could not read config %s: %s", path, exc)
        return {}
    try:
        data = json.loads(text)
    except ValueError as exc:
        logger.warning("ignoring malformed config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("ignoring config %s: top level is not an object", path)
        return {}
    return data


def find_project_config(cwd: Path) -> Path | None:
    for name in PROJECT_CONFIG_NAMES:
        candidate = cwd / name
        if candidate.is_file():
            return candidate
    return None


def load_config(cwd: Path | None = None, global_path: Path | None = None) -> TreeConfig:
    """Merge defaults, global and project config for ``cwd``."""
    cwd = (cwd or Path.cwd()).resolve()
    merged: dict[str, object] = {}
    merged.update(normalize_keys(read_config_file(global_path or GLOBAL_CONFIG_PATH)))
    project_path = find_project_config(cwd)
    if project_path is not None:
        merged.update(normalize_keys(read_config_file(project_path)))
    return validate_config(merged)


def save_global_config(config: TreeConfig, path: Path | None = None) -> None:
    """Persist ``config`` as the global config file; write errors are logged only."""
    target = path or GLOBAL_CONFIG_PATH
    data = config_to_dict(config)
    data["custom_ignores"] = list(config.custom_ignores)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("could not write config %s: %s", target, exc)


__all__ = [
    "TreeConfig",
    "DEFAULT_CONFIG",
    "GLOBAL_CONFIG_PATH",
    "PROJECT_CONFIG_NAMES",
    "config_to_dict",
    "normalize_keys",
    "validate_config",
    "read_config_file",
    "find_project_config",
    "load_config",
    "save_global_config",
]
