"""
Engine configuration.

Settings live in a small JSON file. Missing keys fall back to defaults, and
an unreadable file means defaults.
"""

import json
import logging
from pathlib import Path
from typing import TypedDict


class EngineConfig(TypedDict, total=False):
    """Grant engine configuration."""
    max_depth: int  # Nesting limit for grants carried by granted items
    flag_scope: str  # Actor flag namespace for provenance and the ledger
    save_state: bool  # Record top-level applications in the ledger
    emit_notifications: bool  # Publish messages on the event bus
    log_level: str  # Used by the command line


DEFAULT_CONFIG: EngineConfig = {
    "max_depth": 3,
    "flag_scope": "rogue-trader",
    "save_state": True,
    "emit_notifications": True,
    "log_level": "INFO",
}

CONFIG_FILENAME = ".grant_engine.json"


def get_config_path(base_dir: Path | str = ".") -> Path:
    """Path of the config file inside base_dir."""
    return Path(base_dir) / CONFIG_FILENAME


def load_config(path: Path | str | None = None) -> EngineConfig:
    """
    Load config from a JSON file merged over the defaults.

    A directory is taken to hold the default config file name.
    """
    if path is None:
        return DEFAULT_CONFIG.copy()

    path = Path(path)
    if path.is_dir():
        path = get_config_path(path)
    if not path.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
    except (json.JSONDecodeError, OSError):
        logging.getLogger(__name__).warning(f"Could not read config {path}, using defaults")
        return DEFAULT_CONFIG.copy()

    config = DEFAULT_CONFIG.copy()
    if isinstance(saved, dict):
        config.update({k: v for k, v in saved.items() if k in DEFAULT_CONFIG})
    return config


def save_config(config: EngineConfig, path: Path | str) -> bool:
    """Save config to a JSON file. Returns True on success."""
    path = Path(path)
    if path.is_dir():
        path = get_config_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError:
        return False
