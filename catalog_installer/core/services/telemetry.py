"""
Package-state reporter — anonymous install / uninstall statistics.

Events are appended to a persistent queue and delivered in order.  A
failed delivery keeps that event and everything after it queued for
the next flush.  Every queue operation holds one lock, so events
recorded from concurrent runs are never lost or reordered.

Nothing here may fail an install: callers treat the reporter as
fire-and-forget.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.request
import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from catalog_installer import __version__
from catalog_installer.core.persistence.event_queue import (
    PendingEventQueue,
    load_meta,
    save_meta,
)

logger = logging.getLogger(__name__)

SNAPSHOT_INTERVAL_SEC = 60 * 60 * 24 * 7
POST_TIMEOUT = 10

EventPoster = Callable[[str, dict[str, Any]], None]


def _post_json(endpoint: str, event: dict[str, Any]) -> None:
    req = urllib.request.Request(
        endpoint,
        data=json.dumps(event).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(req, timeout=POST_TIMEOUT) as resp:
        status = getattr(resp, "status", 200)
        if status >= 400:
            raise RuntimeError(f"HTTP {status}")


def describe_event(event: Mapping[str, Any]) -> str:
    kind = str(event.get("type") or "unknown")
    if kind == "snapshot":
        installed = event.get("installed")
        return f"type=snapshot installed={len(installed) if isinstance(installed, list) else 0}"
    package_id = str(event.get("package_id") or "")
    return f"type={kind} package_id={package_id}" if package_id else f"type={kind}"


class PackageStateReporter:
    """Queue-backed event reporter.  One instance per config directory."""

    def __init__(
        self,
        config_dir: Path,
        *,
        endpoint: str = "",
        opt_out: bool = False,
        client_version: str = __version__,
        post: EventPoster | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config_dir = Path(config_dir)
        self.endpoint = endpoint.strip()
        self.opt_out = opt_out
        self.client_version = client_version
        self._post = post or _post_json
        self._clock = clock
        self._queue = PendingEventQueue(self.config_dir)
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint) and not self.opt_out

    @property
    def pending(self) -> list[dict[str, Any]]:
        with self._lock:
            return self._queue.load()

    # ── Events ──────────────────────────────────────────────────

    def _now(self) -> int:
        return int(self._clock())

    def _uid(self) -> str:
        meta = load_meta(self.config_dir)
        if not meta.uid:
            meta.uid = str(uuid.uuid4())
            save_meta(meta, self.config_dir)
        return meta.uid

    def _new_event(self, kind: str, **extra: Any) -> dict[str, Any]:
        return {
            "uid": self._uid(),
            "event_id": str(uuid.uuid4()),
            "ts": self._now(),
            "type": kind,
            "client_version": self.client_version,
            **extra,
        }

    def record_event(self, kind: str, package_id: str) -> bool:
        """Queue an ``install`` / ``uninstall`` event and flush in the background.

        Returns:
            True if an event was queued.
        """
        package_id = str(package_id or "").strip()
        if not self.enabled or not package_id:
            return False
        with self._lock:
            self._queue.append(self._new_event(kind, package_id=package_id))
        self.flush_async()
        return True

    def maybe_send_snapshot(self, installed: Mapping[str, str]) -> bool:
        """Queue a weekly snapshot of installed ids, then flush.

        Returns:
            True if a snapshot was queued.
        """
        if not self.enabled:
            return False
        ids = [str(pid) for pid, version in installed.items() if version]
        queued = False
        with self._lock:
            meta = load_meta(self.config_dir)
            events = self._queue.load()
            has_pending = any(e.get("type") == "snapshot" for e in events)
            due = not meta.last_snapshot_ts or self._now() - meta.last_snapshot_ts >= SNAPSHOT_INTERVAL_SEC
            if due and not has_pending:
                events.append(self._new_event("snapshot", installed=ids))
                self._queue.save(events)
                queued = True
            self._flush_locked()
        return queued

    # ── Delivery ────────────────────────────────────────────────

    def flush(self) -> int:
        """Deliver queued events in order.  Returns the number delivered."""
        if not self.enabled:
            return 0
        with self._lock:
            return self._flush_locked()

    def _flush_locked(self) -> int:
        events = self._queue.load()
        if not events:
            return 0

        sent = 0
        remaining: list[dict[str, Any]] = []
        for i, event in enumerate(events):
            try:
                self._post(self.endpoint, event)
            except Exception as e:
                logger.warning("[package-state] send failed: %s", e)
                remaining = events[i:]
                break
            sent += 1
            logger.info("[package-state] sent %s", describe_event(event))
            ts = event.get("ts")
            if event.get("type") == "snapshot" and isinstance(ts, int):
                meta = load_meta(self.config_dir)
                if ts > meta.last_snapshot_ts:
                    meta.last_snapshot_ts = ts
                    save_meta(meta, self.config_dir)

        self._queue.save(remaining)
        return sent

    def flush_async(self) -> Future[int]:
        """Flush on the reporter's single background worker."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="package-state")
        future = self._executor.submit(self.flush)
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future[int]) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("[package-state] background flush failed: %s", exc)

    def reset_local_state(self) -> None:
        """Drop queued events and forget the last snapshot time."""
        with self._lock:
            self._queue.clear()
            meta = load_meta(self.config_dir)
            meta.last_snapshot_ts = 0
            save_meta(meta, self.config_dir)

    def close(self) -> None:
        """Wait for background flushes to finish."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
