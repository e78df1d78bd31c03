"""
Local host — child processes and the host-application check.

On Windows executables are started through PowerShell
``Start-Process -WindowStyle Hidden -Wait -PassThru`` (``-Verb RunAs``
for elevation).  Elsewhere they are executed directly, with a
non-interactive ``sudo -n`` prefix when elevation is requested.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from collections.abc import Iterable
from pathlib import Path

import psutil

from catalog_installer.adapters.base import ProcessResult
from catalog_installer.core.services.installer.domain.cancellation import CancelToken
from catalog_installer.core.services.installer.domain.errors import (
    CancelledError,
    ProcessTimeoutError,
    StepExecutionError,
)

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.5
_OUTPUT_LIMIT = 2000


def _ps_quote(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def build_command(exe: Path, args: Iterable[str], *, elevate: bool, windows: bool | None = None) -> list[str]:
    """Command line that launches ``exe`` hidden and propagates its exit code."""
    args = [str(a) for a in args]
    if windows is None:
        windows = sys.platform == "win32"

    if windows:
        clause = f" -ArgumentList @({', '.join(_ps_quote(a) for a in args)})" if args else ""
        verb = " -Verb RunAs" if elevate else ""
        script = "; ".join([
            "$ErrorActionPreference='Stop'",
            "[Console]::OutputEncoding=[System.Text.UTF8Encoding]::new()",
            f"$p = Start-Process -FilePath {_ps_quote(str(exe))}{clause}{verb} "
            "-WindowStyle Hidden -Wait -PassThru",
            "exit ($p.ExitCode)",
        ])
        return [
            "powershell", "-NoLogo", "-NoProfile", "-NonInteractive",
            "-ExecutionPolicy", "Bypass", "-Command", script,
        ]

    cmd = [str(exe), *args]
    if elevate and hasattr(os, "geteuid") and os.geteuid() != 0:
        cmd = ["sudo", "-n", *cmd]
    return cmd


def run_hidden(
    exe: Path,
    args: Iterable[str] = (),
    *,
    elevate: bool = False,
    timeout: float | None = None,
    cancel: CancelToken | None = None,
    cwd: Path | None = None,
) -> ProcessResult:
    """Run ``exe`` without a window; poll until exit, timeout or cancel."""
    cmd = build_command(exe, args, elevate=elevate)
    logger.debug("exec: %s", cmd)
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=str(cwd) if cwd else None,
            creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
        )
    except OSError as e:
        raise StepExecutionError(f"cannot launch {exe}: {e}") from e

    start = time.monotonic()
    while True:
        try:
            stdout, stderr = proc.communicate(timeout=_POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.cancelled:
                proc.kill()
                proc.communicate()
                raise CancelledError(cancel.reason or f"cancelled while running {exe}")
            if timeout is not None and time.monotonic() - start > timeout:
                proc.kill()
                proc.communicate()
                raise ProcessTimeoutError(f"{exe} did not exit within {timeout:g}s")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.debug("exit=%s after %dms: %s", proc.returncode, elapsed_ms, exe)
    return ProcessResult(
        exit_code=proc.returncode,
        stdout=(stdout or "")[-_OUTPUT_LIMIT:],
        stderr=(stderr or "")[-_OUTPUT_LIMIT:],
    )


def is_process_running(name: str) -> bool:
    """Whether any live process has ``name`` (case-insensitive)."""
    wanted = name.lower()
    for proc in psutil.process_iter(["name"]):
        try:
            proc_name = proc.info.get("name") or ""
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if proc_name.lower() == wanted:
            return True
    return False
