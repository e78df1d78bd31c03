"""
L1 Domain — Cooperative cancellation.

A ``CancelToken`` is created by the caller and handed to one run.
Long waits (transfers, child processes, login) poll it.
"""

from __future__ import annotations

import threading

from catalog_installer.core.services.installer.domain.errors import CancelledError


class CancelToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses.  True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError(self._reason or "cancelled")
