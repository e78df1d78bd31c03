"""
L5 Orchestration — Storefront login flow.

    UNAUTHENTICATED ──auth error──▶ AWAITING_LOGIN ──signal──▶ AUTHENTICATED

A storefront transfer that reports missing authentication gets one
login round: subscribe to the surface's login-complete signal, open
the surface, wait, retry the transfer once.  A second authentication
failure is terminal.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from catalog_installer.adapters.base import LoginSurface
from catalog_installer.core.services.installer.domain.cancellation import CancelToken
from catalog_installer.core.services.installer.domain.errors import (
    AuthRequiredError,
    CancelledError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_POLL_INTERVAL = 0.2


class AuthState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_LOGIN = "awaiting_login"
    AUTHENTICATED = "authenticated"


class AuthFlowController:
    """One controller per run; it owns the run's login surface."""

    def __init__(
        self,
        surface: LoginSurface | None,
        *,
        login_timeout: float = 300.0,
        cancel: CancelToken | None = None,
        log_prefix: str = "",
    ):
        self._surface = surface
        self._login_timeout = login_timeout
        self._cancel = cancel
        self._prefix = log_prefix
        self._retried = False
        self.state = AuthState.UNAUTHENTICATED

    def run(self, transfer: Callable[[], T]) -> T:
        """Run ``transfer``, logging in and retrying once on an auth failure."""
        try:
            result = transfer()
        except AuthRequiredError as first:
            if self._retried:
                raise
            self._retried = True
            logger.info("%s storefront login required (%s)", self._prefix, first.reason)
            self._await_login(first)
            try:
                result = transfer()
            except AuthRequiredError as second:
                raise AuthRequiredError(
                    f"storefront still rejects the session after login: {second}",
                    reason=second.reason,
                ) from second
        self.state = AuthState.AUTHENTICATED
        return result

    def _await_login(self, cause: AuthRequiredError) -> None:
        if self._surface is None:
            raise AuthRequiredError(
                "storefront login required but no login surface is available",
                reason=cause.reason,
            ) from cause

        done = threading.Event()
        # subscribe before opening so a fast login is never missed
        unsubscribe = self._surface.subscribe_login_complete(done.set)
        try:
            self.state = AuthState.AWAITING_LOGIN
            self._surface.open()
            deadline = time.monotonic() + self._login_timeout
            while not done.wait(_POLL_INTERVAL):
                if self._cancel is not None and self._cancel.cancelled:
                    raise CancelledError(self._cancel.reason or "cancelled during login")
                if time.monotonic() >= deadline:
                    raise AuthRequiredError(
                        f"timed out after {self._login_timeout:g}s waiting for storefront login",
                        reason=cause.reason,
                    ) from cause
            logger.info("%s storefront login completed", self._prefix)
        finally:
            try:
                unsubscribe()
            except Exception as e:
                logger.debug("login unsubscribe failed: %s", e)

    def close(self) -> None:
        """Close the login surface.  Runs at the end of every run."""
        if self._surface is None:
            return
        try:
            self._surface.close()
        except Exception as e:
            logger.warning("%s closing login surface %s failed: %s",
                           self._prefix, self._surface.surface_id, e)
