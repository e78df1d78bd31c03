"""
Configuration loader — reads settings.yml into the Settings model.

A missing file means "all defaults".  A ``settings.json`` written by
other tools is read with the JSON parser, everything else as YAML.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from catalog_installer.core.models.settings import Settings

logger = logging.getLogger(__name__)

SETTINGS_FILES = ("settings.yml", "settings.yaml", "settings.json")


class ConfigError(Exception):
    """Raised when the settings file is unreadable or invalid."""


def find_settings_file(config_dir: Path) -> Path | None:
    for name in SETTINGS_FILES:
        candidate = Path(config_dir) / name
        if candidate.is_file():
            return candidate
    return None


def load_settings(path: Path | None = None, *, config_dir: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit settings file.  If None, looked up in ``config_dir``.
        config_dir: Directory searched for ``SETTINGS_FILES``.

    Returns:
        Validated Settings (defaults when no file exists).

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    if path is None and config_dir is not None:
        path = find_settings_file(config_dir)

    if path is None:
        logger.debug("No settings file — using defaults")
        return Settings()

    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if path.suffix.lower() == ".json":
        try:
            data = json.loads(raw) if raw.strip() else None
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid settings: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings


def save_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    content = yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False, allow_unicode=True)
    path.write_text(content, encoding="utf-8")
    logger.debug("Settings saved to %s", path)
