"""Configuration management for gitbridge."""

import os
import sys
import json
from pathlib import Path

APP_NAME = "GitBridge"

DEFAULT_LOG_LIMIT = 100
DEFAULT_GRAPH_LIMIT = 200

DEFAULT_CONFIG = {
    "git_path": None,  # str | None - persisted executable override
    "allow_path_fallback": True,  # bool - fall back to bare `git` / powershell wrapper
    "log_limit": DEFAULT_LOG_LIMIT,  # int
    "graph_limit": DEFAULT_GRAPH_LIMIT,  # int
    "log_level": "INFO",  # str
    "log_json": False,  # bool
    "askpass_prefix": "gitbridge-askpass-",  # str - temp file prefix for credential hooks
}


def _config_dir() -> Path:
    """Get the platform-specific configuration directory."""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / APP_NAME
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / APP_NAME


def _config_path() -> Path:
    """Get the configuration file path."""
    return _config_dir() / "settings.json"


def load_config(path: Path | None = None) -> dict:
    """Load configuration from file, falling back to defaults."""
    p = path or _config_path()
    try:
        with p.open("r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            return DEFAULT_CONFIG.copy()
    except (OSError, ValueError):
        return DEFAULT_CONFIG.copy()
    # Fill any missing keys with defaults
    for k, v in DEFAULT_CONFIG.items():
        cfg.setdefault(k, v)
    return cfg


def save_config(cfg: dict, path: Path | None = None):
    """Save configuration to file."""
    target = path or _config_path()
    d = target.parent
    d.mkdir(parents=True, exist_ok=True)
    tmp = d / f".{target.name}.tmp"
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2)
    tmp.replace(target)


def get_git_path(cfg: dict) -> str | None:
    """Get the persisted git executable override, if any."""
    value = cfg.get("git_path")
    return value or None


def set_git_path(cfg: dict, path: str | None):
    """Persist (or clear) the git executable override."""
    cfg["git_path"] = path or None


def _positive_int(cfg: dict, key: str, default: int) -> int:
    try:
        value = int(cfg.get(key, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def get_log_limit(cfg: dict) -> int:
    """Number of commits requested by the log operation."""
    return _positive_int(cfg, "log_limit", DEFAULT_LOG_LIMIT)


def get_graph_limit(cfg: dict) -> int:
    """Number of commits requested by the graph operation."""
    return _positive_int(cfg, "graph_limit", DEFAULT_GRAPH_LIMIT)
