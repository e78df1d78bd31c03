"""
L4 Execution — Step handlers.

One handler per action.  Each takes the current ``ExecutionContext``
and returns the context for the next step; only ``download`` returns
a context with a new ``download_path``.  Handlers raise on failure.
The orchestrator adds step position and the ``StepFailedError`` wrapper.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from catalog_installer.adapters.base import AppDirectories, HostBridge, TransferProgress
from catalog_installer.core.models.package import SourceSpec
from catalog_installer.core.services.installer.domain.cancellation import CancelToken
from catalog_installer.core.services.installer.domain.context import ExecutionContext
from catalog_installer.core.services.installer.domain.errors import (
    CancelledError,
    StepExecutionError,
    UnsupportedActionError,
)
from catalog_installer.core.services.installer.domain.macros import expand_macros
from catalog_installer.core.services.installer.domain.progress import StepProgressTracker
from catalog_installer.core.services.installer.resolver.source_resolution import (
    SourceResolver,
)

if TYPE_CHECKING:
    from catalog_installer.core.services.installer.orchestration.auth_flow import (
        AuthFlowController,
    )

logger = logging.getLogger(__name__)

STDERR_LIMIT = 500


@dataclass
class StepRuntime:
    """Everything a handler needs besides the context and the step itself."""

    host: HostBridge
    dirs: AppDirectories
    run_id: str
    log_prefix: str
    index: int = 0
    total: int = 0
    source: SourceSpec | None = None
    resolver: SourceResolver | None = None
    auth: AuthFlowController | None = None
    cancel: CancelToken | None = None
    strict_extract: bool = False
    download_timeout: float | None = None
    run_timeout: float | None = None
    on_units: Callable[[float], None] = field(default=lambda units: None)

    def expand(self, value: Any, ctx: ExecutionContext) -> Any:
        return expand_macros(value, ctx, self.dirs)


def _resolve_exe(raw: str, ctx: ExecutionContext) -> Path:
    """Absolute executable path; relative paths anchor at the run's temp dir."""
    path = Path(raw)
    if not path.is_absolute():
        path = ctx.tmp_dir / path
    return path.resolve()


# ── Install handlers ────────────────────────────────────────────


def _execute_download_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    resolver = rt.resolver or SourceResolver()
    resolved = resolver.resolve(rt.source)
    tracker = StepProgressTracker(rt.index)
    task_id = resolved.file_id if resolved.kind == "google_drive" else f"{rt.run_id}:{rt.index}"

    def _on_progress(signal: TransferProgress) -> None:
        if signal.task_id != task_id:
            return
        before = tracker.units
        units = tracker.update(signal.read, signal.total)
        if units > before:
            rt.on_units(units)

    if resolved.kind == "google_drive":
        logger.info("%s downloading from Google Drive fileId=%s to %s",
                    rt.log_prefix, resolved.file_id, ctx.tmp_dir)
        path = rt.host.cloud_drive_download(
            resolved.file_id, ctx.tmp_dir,
            on_progress=_on_progress, cancel=rt.cancel, timeout=rt.download_timeout,
        )
    elif resolved.needs_auth:
        logger.info("%s downloading from BOOTH %s to %s", rt.log_prefix, resolved.url, ctx.tmp_dir)

        def _transfer() -> Path:
            return rt.host.download_authenticated(
                resolved.url, ctx.tmp_dir, task_id=task_id,
                on_progress=_on_progress, cancel=rt.cancel, timeout=rt.download_timeout,
            )

        path = rt.auth.run(_transfer) if rt.auth is not None else _transfer()
    else:
        logger.info("%s downloading from %s to %s", rt.log_prefix, resolved.url, ctx.tmp_dir)
        path = rt.host.download(
            resolved.url, ctx.tmp_dir, task_id=task_id,
            on_progress=_on_progress, cancel=rt.cancel, timeout=rt.download_timeout,
        )

    logger.info("%s downloaded %s", rt.log_prefix, path)
    return ctx.with_download(Path(path))


def _extract(ctx: ExecutionContext, step: Any, rt: StepRuntime, *, sfx: bool) -> ExecutionContext:
    src = rt.expand(step.from_, ctx) if step.from_ else str(ctx.require_download())
    dest = rt.expand(step.to, ctx) if step.to else str(ctx.tmp_dir)
    kind = "SFX " if sfx else ""
    logger.info("%s extracting %sfrom %s to %s", rt.log_prefix, kind, src, dest)

    extract = rt.host.extract_self_extracting_archive if sfx else rt.host.extract_archive
    try:
        extract(Path(src), Path(dest))
    except CancelledError:
        raise
    except Exception as e:
        if rt.strict_extract:
            raise
        logger.warning("%s %sextraction failed, continuing: %s", rt.log_prefix, kind.lower(), e)
    return ctx


def _execute_extract_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    return _extract(ctx, step, rt, sfx=False)


def _execute_extract_sfx_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    return _extract(ctx, step, rt, sfx=True)


def _execute_copy_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    src = rt.expand(step.from_, ctx)
    dest = rt.expand(step.to, ctx)
    if not src or not dest:
        raise StepExecutionError(f"copy requires both from and to (from={src!r} to={dest!r})")

    count = rt.host.copy_by_pattern(src, dest)
    logger.info("%s copy matched %d files (from=%s to=%s)", rt.log_prefix, count, src, dest)
    if count == 0:
        raise StepExecutionError(f"copy matched 0 files (from={src} to={dest})")
    return ctx


def _execute_run_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    raw = rt.expand(step.path, ctx)
    if not raw:
        raise StepExecutionError("run requires a path")
    exe = _resolve_exe(raw, ctx)
    args = [rt.expand(str(a), ctx) for a in step.args]

    logger.info("%s run %s args=%s elevate=%s", rt.log_prefix, exe, args, step.elevate)
    result = rt.host.run_hidden(
        exe, args, elevate=step.elevate, timeout=rt.run_timeout, cancel=rt.cancel,
    )
    if result.exit_code != 0:
        stderr = (result.stderr or "")[:STDERR_LIMIT]
        raise StepExecutionError(
            f"process failed (exe={exe}, args={args}, elevate={step.elevate}) "
            f"exit={result.exit_code}, stderr={stderr}"
        )
    return ctx


def _execute_run_auo_setup_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    raw = rt.expand(step.path, ctx)
    if not raw:
        raise StepExecutionError("run_auo_setup requires a path")
    exe = _resolve_exe(raw, ctx)
    code = rt.host.run_special_setup(exe, timeout=rt.run_timeout, cancel=rt.cancel)
    logger.info("%s run_auo_setup %s exit=%s", rt.log_prefix, exe, code)
    return ctx


# ── Uninstall handlers ──────────────────────────────────────────


def _execute_delete_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    path = rt.expand(step.path, ctx)
    if not path:
        raise StepExecutionError("delete requires a path")
    try:
        removed = rt.host.delete(path)
    except CancelledError:
        raise
    except Exception as e:
        raise StepExecutionError(f"delete failed path={path}: {e}") from e

    if removed:
        logger.info('%s delete ok path="%s"', rt.log_prefix, path)
    else:
        logger.info('%s delete skip (not found) path="%s"', rt.log_prefix, path)
    return ctx


# ── Dispatch ────────────────────────────────────────────────────

StepHandler = Callable[[ExecutionContext, Any, StepRuntime], ExecutionContext]

INSTALL_HANDLERS: dict[str, StepHandler] = {
    "download": _execute_download_step,
    "extract": _execute_extract_step,
    "extract_sfx": _execute_extract_sfx_step,
    "copy": _execute_copy_step,
    "run": _execute_run_step,
    "run_auo_setup": _execute_run_auo_setup_step,
}

UNINSTALL_HANDLERS: dict[str, StepHandler] = {
    "delete": _execute_delete_step,
    "run": _execute_run_step,
}


def _dispatch(
    table: dict[str, StepHandler], ctx: ExecutionContext, step: Any, rt: StepRuntime,
) -> ExecutionContext:
    action = str(getattr(step, "action", ""))
    handler = table.get(action)
    if handler is None:
        raise UnsupportedActionError(action)
    return handler(ctx, step, rt)


def execute_install_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    """Run one install step and return the next context."""
    return _dispatch(INSTALL_HANDLERS, ctx, step, rt)


def execute_uninstall_step(ctx: ExecutionContext, step: Any, rt: StepRuntime) -> ExecutionContext:
    """Run one uninstall step and return the next context."""
    return _dispatch(UNINSTALL_HANDLERS, ctx, step, rt)
