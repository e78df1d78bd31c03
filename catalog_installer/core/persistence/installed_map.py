"""
Installed-state persistence — ``installed.json`` in the config directory.

The file is a flat ``{package_id: version}`` JSON object.  Writes are
atomic (write to temp file, then rename) so a crash mid-write never
leaves a truncated map behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

INSTALLED_FILE = "installed.json"

_lock = threading.Lock()


def installed_map_path(config_dir: Path) -> Path:
    return Path(config_dir) / INSTALLED_FILE


def write_json_atomic(path: Path, data: Any, *, prefix: str = ".tmp_") -> None:
    """Serialize ``data`` to ``path`` via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to write %s", path)
        raise


def load_installed_map(path: Path) -> dict[str, str]:
    """Read the map.  Missing or corrupt files read as empty."""
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Corrupt installed map %s: %s — starting fresh", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Installed map %s is not an object — ignoring", path)
        return {}
    return {str(k): v for k, v in data.items() if isinstance(v, str)}


def save_installed_map(mapping: dict[str, str], path: Path) -> None:
    write_json_atomic(path, dict(sorted(mapping.items())), prefix=".installed_")
    logger.debug("Installed map saved to %s (%d entries)", path, len(mapping))


def add_installed(path: Path, package_id: str, version: str = "") -> dict[str, str]:
    with _lock:
        mapping = load_installed_map(path)
        mapping[package_id] = version or ""
        save_installed_map(mapping, path)
        return mapping


def remove_installed(path: Path, package_id: str) -> dict[str, str]:
    with _lock:
        mapping = load_installed_map(path)
        mapping.pop(package_id, None)
        save_installed_map(mapping, path)
        return mapping
