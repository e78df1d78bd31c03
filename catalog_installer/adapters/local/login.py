"""
Local host — BOOTH login surface.

Opens the store's sign-in page in the user's browser.  Completion is
signalled when the session cookie file (exported by the user or a
browser extension) appears or changes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

import click

from catalog_installer.adapters.base import LoginSurface

logger = logging.getLogger(__name__)

_WATCH_INTERVAL = 1.0


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class BrowserLoginSurface(LoginSurface):
    def __init__(
        self,
        login_url: str,
        cookie_file: Path,
        *,
        launcher: Callable[[str], object] | None = None,
        watch_interval: float = _WATCH_INTERVAL,
    ):
        self.login_url = login_url
        self.cookie_file = Path(cookie_file)
        self._launch = launcher or click.launch
        self._interval = watch_interval
        self._subscribers: list[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._watcher: threading.Thread | None = None

    @property
    def surface_id(self) -> str:
        return "booth-auth"

    def subscribe_login_complete(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def open(self) -> None:
        baseline = _mtime(self.cookie_file)
        click.echo(f"🔑 Sign in to BOOTH in your browser, then save cookies to {self.cookie_file}")
        self._launch(self.login_url)
        if self._watcher is not None and self._watcher.is_alive():
            return
        self._stop.clear()
        self._watcher = threading.Thread(
            target=self._watch, args=(baseline,), name="booth-login-watch", daemon=True,
        )
        self._watcher.start()

    def _watch(self, baseline: float | None) -> None:
        while not self._stop.wait(self._interval):
            current = _mtime(self.cookie_file)
            if current is not None and current != baseline:
                logger.debug("cookie file %s updated", self.cookie_file)
                self._notify()
                return

    def _notify(self) -> None:
        with self._lock:
            callbacks = list(self._subscribers)
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning("login-complete subscriber failed: %s", e)

    def close(self) -> None:
        self._stop.set()
        watcher = self._watcher
        self._watcher = None
        if watcher is not None and watcher is not threading.current_thread():
            watcher.join(timeout=self._interval * 2)
