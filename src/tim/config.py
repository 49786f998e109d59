"""Configuration loading for the tim CLI."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".tim.yml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "paths": {
        "tasks": "tasks",
    },
    "review": {
        "format": "terminal",
        "verbosity": "normal",
        "base_branch": "main",
    },
}


def default_config() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        existing = base.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            base[key] = _merge(existing, value)
        else:
            base[key] = value
    return base


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load ``config_path`` merged over the defaults.

    When no path is given, ``.tim.yml`` in the working directory is used if it
    exists. An explicitly requested file must exist.
    """
    config = default_config()
    explicit = config_path is not None
    path = Path(config_path) if explicit else Path.cwd() / DEFAULT_CONFIG_NAME

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        LOGGER.debug("No config file at %s; using defaults", path)
        config["_root"] = str(Path.cwd())
        return config

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    LOGGER.debug("Loaded config from %s", path)
    config = _merge(config, data)
    config["_root"] = str(path.resolve().parent)
    return config


def resolve_tasks_dir(config: Mapping[str, Any], override: Optional[Path] = None) -> Path:
    """Return the plan directory, resolving relative paths against the config root."""
    if override is not None:
        return Path(override)
    root = Path(config.get("_root") or Path.cwd())
    raw = (config.get("paths") or {}).get("tasks") or "tasks"
    tasks = Path(str(raw)).expanduser()
    if not tasks.is_absolute():
        tasks = root / tasks
    return tasks
