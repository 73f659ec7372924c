"""Configuration manager for ArchGraph using TOML files.

Two files are consulted, later ones winning key by key:

1. ``$ARCHGRAPH_HOME/config.toml`` (user defaults)
2. ``./archgraph.toml`` (project overrides)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import toml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.toml"
PROJECT_CONFIG_NAME = "archgraph.toml"

DEFAULT_QUERY_CONFIG: Dict[str, Any] = {
    "default_depth": 1,
    "search_limit": 10,
    "concise": True,
}


def user_config_file() -> Path:
    """Location of the user-level config file."""
    from .config import BASE_DIR

    return BASE_DIR / CONFIG_FILE_NAME


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_full_config() -> Dict[str, Any]:
    """Load the merged TOML config (all sections)."""
    merged: Dict[str, Any] = {}
    for path in (user_config_file(), Path.cwd() / PROJECT_CONFIG_NAME):
        for section, values in _read_toml(path).items():
            if isinstance(values, dict):
                merged.setdefault(section, {}).update(values)
            else:
                merged[section] = values
    return merged


def load_query_config() -> Dict[str, Any]:
    """Load the ``[query]`` section merged over the built-in defaults."""
    config = DEFAULT_QUERY_CONFIG.copy()
    config.update(load_full_config().get("query", {}))
    return config


def load_graph_config() -> Dict[str, Any]:
    """Load the ``[graph]`` section, or an empty dict."""
    return load_full_config().get("graph", {})


def _save_user_config(config: Dict[str, Any]) -> bool:
    """Write the user config file, preserving all sections."""
    path = user_config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.error("Could not write %s: %s", path, exc)
        return False


def save_query_config(**values: Any) -> bool:
    """Update keys of the user ``[query]`` section.

    Only keys present in :data:`DEFAULT_QUERY_CONFIG` are accepted; ``None``
    values are ignored so callers can pass optional CLI options straight in.

    Returns:
        True if saved successfully, False otherwise
    """
    unknown = set(values) - set(DEFAULT_QUERY_CONFIG)
    if unknown:
        raise ValueError(f"Unknown query settings: {', '.join(sorted(unknown))}")

    config = _read_toml(user_config_file())
    section = config.setdefault("query", {})
    for key, value in values.items():
        if value is not None:
            section[key] = value
    return _save_user_config(config)
