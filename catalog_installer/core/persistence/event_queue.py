"""
Telemetry persistence — pending package-state events and reporter metadata.

``pending_events.json`` holds events not yet delivered, oldest first;
the file is removed when the queue empties.  ``package_state.json``
holds the anonymous client id and the time of the last snapshot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from catalog_installer.core.persistence.installed_map import write_json_atomic

logger = logging.getLogger(__name__)

PENDING_FILE = "pending_events.json"
META_FILE = "package_state.json"


def _read_json(path: Path, default: Any) -> Any:
    if not path.is_file():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Cannot read %s: %s — using defaults", path, e)
        return default


class PendingEventQueue:
    """Disk-backed FIFO of undelivered events."""

    def __init__(self, config_dir: Path):
        self.path = Path(config_dir) / PENDING_FILE

    def load(self) -> list[dict[str, Any]]:
        raw = _read_json(self.path, [])
        if not isinstance(raw, list):
            return []
        return [e for e in raw if isinstance(e, dict)]

    def save(self, events: list[dict[str, Any]]) -> None:
        if not events:
            self.path.unlink(missing_ok=True)
            return
        write_json_atomic(self.path, events, prefix=".pending_")

    def append(self, event: dict[str, Any]) -> list[dict[str, Any]]:
        events = self.load()
        events.append(event)
        self.save(events)
        return events

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def __len__(self) -> int:
        return len(self.load())


@dataclass
class TelemetryMeta:
    uid: str = ""
    last_snapshot_ts: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> TelemetryMeta:
        if not isinstance(raw, dict):
            return cls()
        uid = raw.get("uid") if isinstance(raw.get("uid"), str) else ""
        ts = raw.get("last_snapshot_ts")
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            ts = 0
        return cls(uid=uid, last_snapshot_ts=int(ts))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def meta_path(config_dir: Path) -> Path:
    return Path(config_dir) / META_FILE


def load_meta(config_dir: Path) -> TelemetryMeta:
    return TelemetryMeta.from_dict(_read_json(meta_path(config_dir), {}))


def save_meta(meta: TelemetryMeta, config_dir: Path) -> None:
    write_json_atomic(meta_path(config_dir), meta.to_dict(), prefix=".meta_")
