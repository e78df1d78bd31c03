"""
L5 Orchestration — Install / uninstall runs.

A run is a left fold over the descriptor's steps:

    ctx₀ = ExecutionContext(tmp_dir)
    ctxᵢ₊₁ = handler(ctxᵢ, stepᵢ)

Steps run strictly in order.  The first failure stops the run (no
rollback of completed steps), emits an ``error`` progress event and
raises ``StepFailedError``.  After a fully successful run the
installed state is recorded, telemetry is queued, ``done`` is emitted
and the per-package temp directory is removed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from catalog_installer.adapters.base import HostBridge, LoginSurface
from catalog_installer.core.models.package import PackageDescriptor
from catalog_installer.core.models.settings import Settings
from catalog_installer.core.services.installer.domain.cancellation import CancelToken
from catalog_installer.core.services.installer.domain.context import ExecutionContext
from catalog_installer.core.services.installer.domain.errors import (
    CancelledError,
    InstallerError,
    PreconditionFailedError,
    StepFailedError,
)
from catalog_installer.core.services.installer.domain.progress import (
    ProgressSink,
    build_progress,
    emit,
)
from catalog_installer.core.services.installer.execution.step_executors import (
    StepRuntime,
    execute_install_step,
    execute_uninstall_step,
)
from catalog_installer.core.services.installer.execution.workdir import (
    cleanup_work_dir,
    prepare_work_dir,
)
from catalog_installer.core.services.installer.orchestration.auth_flow import (
    AuthFlowController,
)
from catalog_installer.core.services.installer.resolver.github_release import (
    GitHubReleaseResolver,
)
from catalog_installer.core.services.installer.resolver.source_resolution import (
    SourceResolver,
)

if TYPE_CHECKING:
    from catalog_installer.core.services.telemetry import PackageStateReporter

logger = logging.getLogger(__name__)

StateSink = Callable[[str, str], None]

HOST_RUNNING_MESSAGE = (
    "AviUtl2 is running. Close it before installing or removing packages."
)


class PackageInstaller:
    """Runs package descriptors against a host.

    ``install`` and ``uninstall`` return ``None`` on success and raise an
    ``InstallerError`` subclass on failure.
    """

    def __init__(
        self,
        host: HostBridge,
        *,
        work_root: Path,
        login_surface: LoginSurface | None = None,
        resolver: SourceResolver | None = None,
        telemetry: PackageStateReporter | None = None,
        dev_mode: bool = False,
        strict_extract: bool = False,
        download_timeout: float | None = None,
        run_timeout: float | None = None,
        login_timeout: float = 300.0,
    ):
        self.host = host
        self.work_root = Path(work_root)
        self.login_surface = login_surface
        self.resolver = resolver or SourceResolver()
        self.telemetry = telemetry
        self.dev_mode = dev_mode
        self.strict_extract = strict_extract
        self.download_timeout = download_timeout
        self.run_timeout = run_timeout
        self.login_timeout = login_timeout

    @classmethod
    def from_settings(
        cls,
        host: HostBridge,
        settings: Settings,
        *,
        work_root: Path,
        login_surface: LoginSurface | None = None,
        telemetry: PackageStateReporter | None = None,
    ) -> PackageInstaller:
        resolver = SourceResolver(GitHubReleaseResolver(token=settings.github_token))
        return cls(
            host,
            work_root=work_root,
            login_surface=login_surface,
            resolver=resolver,
            telemetry=telemetry,
            dev_mode=settings.dev_mode,
            strict_extract=settings.strict_extract,
            download_timeout=settings.download_timeout,
            run_timeout=settings.run_timeout,
            login_timeout=settings.login_timeout,
        )

    # ── Public API ──────────────────────────────────────────────

    def install(
        self,
        descriptor: PackageDescriptor,
        on_progress: ProgressSink | None = None,
        *,
        on_state: StateSink | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        """Install ``descriptor``; raise ``InstallerError`` on failure."""
        self._execute(
            descriptor,
            mode="installer",
            steps=descriptor.installer.install,
            dispatch=execute_install_step,
            on_progress=on_progress,
            on_state=on_state,
            cancel=cancel,
        )

    def uninstall(
        self,
        descriptor: PackageDescriptor,
        on_progress: ProgressSink | None = None,
        *,
        on_state: StateSink | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        """Uninstall ``descriptor``; raise ``InstallerError`` on failure."""
        self._execute(
            descriptor,
            mode="uninstall",
            steps=descriptor.installer.uninstall,
            dispatch=execute_uninstall_step,
            on_progress=on_progress,
            on_state=on_state,
            cancel=cancel,
        )

    # ── Run ─────────────────────────────────────────────────────

    def check_preconditions(self) -> None:
        """Refuse to run while the host application is alive.

        Advisory only: the application may start after this check.
        """
        try:
            running = self.host.is_host_app_running()
        except Exception as e:
            raise PreconditionFailedError(
                f"could not determine whether AviUtl2 is running: {e}"
            ) from e
        if running:
            raise PreconditionFailedError(HOST_RUNNING_MESSAGE)

    def _execute(
        self,
        descriptor: PackageDescriptor,
        *,
        mode: str,
        steps: Sequence[Any],
        dispatch: Callable[[ExecutionContext, Any, StepRuntime], ExecutionContext],
        on_progress: ProgressSink | None,
        on_state: StateSink | None,
        cancel: CancelToken | None,
    ) -> None:
        package_id = descriptor.id
        version = descriptor.latest_version
        prefix = f"[{mode} {package_id}]"
        total = len(steps)

        self.check_preconditions()
        try:
            dirs = self.host.app_directories()
        except Exception as e:
            raise InstallerError(f"{prefix} could not resolve app directories: {e}") from e

        try:
            tmp_dir = prepare_work_dir(self.work_root, package_id, version)
        except OSError as e:
            raise InstallerError(f"{prefix} could not prepare work directory: {e}") from e
        emit(on_progress, build_progress(0, None, None, "init", total))
        if mode == "installer":
            logger.info("%s start version=%s steps=%d", prefix, version, total)
        else:
            logger.info("%s start steps=%d", prefix, total)

        auth = AuthFlowController(
            self.login_surface,
            login_timeout=self.login_timeout,
            cancel=cancel,
            log_prefix=prefix,
        )
        try:
            rt = StepRuntime(
                host=self.host,
                dirs=dirs,
                run_id=uuid.uuid4().hex,
                log_prefix=prefix,
                total=total,
                source=descriptor.installer.source,
                resolver=self.resolver,
                auth=auth,
                cancel=cancel,
                strict_extract=self.strict_extract,
                download_timeout=self.download_timeout,
                run_timeout=self.run_timeout,
            )
            ctx = ExecutionContext(tmp_dir=tmp_dir)
            for index, step in enumerate(steps):
                ctx = self._run_step(ctx, step, index, rt, dispatch, on_progress, package_id, mode)
        finally:
            auth.close()

        self._finish(descriptor, mode, prefix, on_state)
        emit(on_progress, build_progress(total, None, None, "done", total))

        if self.dev_mode:
            logger.debug("%s dev mode, keeping %s", prefix, tmp_dir)
        else:
            cleanup_work_dir(tmp_dir)

    def _run_step(
        self,
        ctx: ExecutionContext,
        step: Any,
        index: int,
        rt: StepRuntime,
        dispatch: Callable[[ExecutionContext, Any, StepRuntime], ExecutionContext],
        on_progress: ProgressSink | None,
        package_id: str,
        mode: str,
    ) -> ExecutionContext:
        action = str(getattr(step, "action", ""))
        total = rt.total

        def _running(units: float) -> None:
            emit(on_progress, build_progress(units, action, index, "running", total))

        rt.index = index
        rt.on_units = _running
        try:
            if rt.cancel is not None:
                rt.cancel.raise_if_cancelled()
            _running(index)
            ctx = dispatch(ctx, step, rt)
        except CancelledError:
            emit(on_progress, build_progress(index, action, index, "error", total))
            logger.warning("%s cancelled at step %d/%d", rt.log_prefix, index + 1, total)
            raise
        except Exception as e:
            emit(on_progress, build_progress(index, action, index, "error", total))
            err = StepFailedError(
                package_id=package_id,
                action=action,
                index=index,
                total=total,
                cause=e,
                mode=mode,
            )
            logger.error("%s", err, exc_info=logger.isEnabledFor(logging.DEBUG))
            raise err from e

        emit(on_progress, build_progress(index + 1, action, index, "step-complete", total))
        return ctx

    def _finish(
        self,
        descriptor: PackageDescriptor,
        mode: str,
        prefix: str,
        on_state: StateSink | None,
    ) -> None:
        package_id = descriptor.id
        try:
            if mode == "installer":
                self.host.record_installed(package_id, descriptor.latest_version)
            else:
                self.host.record_removed(package_id)
        except Exception as e:
            raise InstallerError(f"{prefix} could not record installed state: {e}") from e

        if on_state is not None:
            try:
                versions = self.host.query_installed_versions([package_id])
                on_state(package_id, str(versions.get(package_id, "") or ""))
            except Exception as e:
                logger.warning("%s state refresh failed: %s", prefix, e)

        if self.telemetry is not None:
            event = "install" if mode == "installer" else "uninstall"
            try:
                self.telemetry.record_event(event, package_id)
            except Exception as e:
                logger.debug("%s telemetry %s event dropped: %s", prefix, event, e)

        if mode == "installer":
            logger.info("%s completed version=%s", prefix, descriptor.latest_version)
        else:
            logger.info("%s completed", prefix)
