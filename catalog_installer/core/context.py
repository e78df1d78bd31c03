"""
Config-directory context — where this process keeps its state.

The directory is set ONCE at startup by the CLI entry point (or by a
test fixture) and read by every service that persists something:
settings, installed.json, the telemetry queue, installer temp dirs.

Resolution order when nothing was set explicitly:
    CATALOG_CONFIG_DIR  >  %APPDATA%/aviutl2-catalog  >  ~/.config/aviutl2-catalog
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

APP_DIR_NAME = "aviutl2-catalog"
ENV_CONFIG_DIR = "CATALOG_CONFIG_DIR"

_config_dir: Optional[Path] = None


def default_config_dir() -> Path:
    env = os.environ.get(ENV_CONFIG_DIR)
    if env:
        return Path(env).expanduser()
    if sys.platform == "win32" and os.environ.get("APPDATA"):
        return Path(os.environ["APPDATA"]) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def set_config_dir(path: Optional[Path]) -> None:
    """Register the config directory for the current process."""
    global _config_dir
    _config_dir = Path(path) if path is not None else None


def get_config_dir() -> Path:
    """The registered config directory, or the default one."""
    return _config_dir if _config_dir is not None else default_config_dir()
