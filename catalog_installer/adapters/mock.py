"""
Mock host — universal test double for the host bridge.

Records every command it receives and succeeds by default.  Failures,
copy counts, process results, transfer progress and storefront auth
rejections are configurable per command.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from catalog_installer.adapters.base import (
    AppDirectories,
    HostBridge,
    LoginSurface,
    ProcessResult,
    ProgressCallback,
    TransferProgress,
)
from catalog_installer.core.services.installer.domain.errors import AuthRequiredError


class MockHost(HostBridge):
    """In-memory host.

    ``call_log`` holds ``(command, kwargs)`` tuples in call order.
    """

    def __init__(
        self,
        root: Path | str = "/mock",
        *,
        download_name: str = "package.zip",
        copy_count: int = 1,
        running: bool = False,
    ):
        root = Path(root)
        self.directories = AppDirectories(
            app_dir=root / "app",
            plugins_dir=root / "data" / "Plugin",
            scripts_dir=root / "data" / "Script",
            data_dir=root / "data",
        )
        self.download_name = download_name
        self.copy_count = copy_count
        self.running: bool = running
        self.installed: dict[str, str] = {}
        self.progress_signals: list[tuple[int, int | None]] = []
        self.foreign_progress = False
        self.auth_failures = 0
        self.auth_reason = "AUTH_REQUIRED"
        self.run_result = ProcessResult(exit_code=0)
        self.setup_exit_code = 0
        self.missing_paths: set[str] = set()
        self._failures: dict[str, BaseException] = {}
        self._call_log: list[tuple[str, dict[str, Any]]] = []

    # ── Inspection ──────────────────────────────────────────────

    @property
    def call_log(self) -> list[tuple[str, dict[str, Any]]]:
        """All commands this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        return [name for name, _ in self._call_log]

    def calls(self, command: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self._call_log if name == command]

    # ── Configuration ───────────────────────────────────────────

    def set_failure(self, command: str, error: BaseException | str = "Mock failure") -> None:
        """Make ``command`` raise ``error`` (a string becomes ``RuntimeError``)."""
        self._failures[command] = RuntimeError(error) if isinstance(error, str) else error

    def clear_failure(self, command: str) -> None:
        self._failures.pop(command, None)

    def _record(self, command: str, **kwargs: Any) -> None:
        self._call_log.append((command, kwargs))
        failure = self._failures.get(command)
        if failure is not None:
            raise failure

    # ── Transfers ───────────────────────────────────────────────

    def _fake_transfer(
        self, dest_dir: Path, task_id: str, on_progress: ProgressCallback | None,
    ) -> Path:
        if on_progress is not None:
            for read, total in self.progress_signals:
                if self.foreign_progress:
                    on_progress(TransferProgress(task_id="someone-else", read=total or read, total=total))
                on_progress(TransferProgress(task_id=task_id, read=read, total=total))
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        path = dest_dir / self.download_name
        path.write_bytes(b"mock payload")
        return path

    def download(self, url, dest_dir, *, task_id, on_progress=None, cancel=None, timeout=None):
        self._record("download", url=url, dest_dir=dest_dir, task_id=task_id, timeout=timeout)
        return self._fake_transfer(dest_dir, task_id, on_progress)

    def download_authenticated(self, url, dest_dir, *, task_id, on_progress=None, cancel=None,
                               timeout=None):
        self._record("download_authenticated", url=url, dest_dir=dest_dir, task_id=task_id)
        if self.auth_failures > 0:
            self.auth_failures -= 1
            raise AuthRequiredError("storefront session missing", reason=self.auth_reason)
        return self._fake_transfer(dest_dir, task_id, on_progress)

    def cloud_drive_download(self, file_id, dest_dir, *, on_progress=None, cancel=None,
                             timeout=None):
        self._record("cloud_drive_download", file_id=file_id, dest_dir=dest_dir)
        return self._fake_transfer(dest_dir, file_id, on_progress)

    # ── Archives / filesystem ───────────────────────────────────

    def extract_archive(self, archive: Path, dest: Path) -> None:
        self._record("extract_archive", archive=Path(archive), dest=Path(dest))

    def extract_self_extracting_archive(self, archive: Path, dest: Path) -> None:
        self._record("extract_self_extracting_archive", archive=Path(archive), dest=Path(dest))

    def copy_by_pattern(self, src: str, dest: str) -> int:
        self._record("copy_by_pattern", src=src, dest=dest)
        return self.copy_count

    def delete(self, path: str) -> bool:
        self._record("delete", path=path)
        return path not in self.missing_paths

    # ── Processes ───────────────────────────────────────────────

    def run_hidden(self, path, args=(), *, elevate=False, timeout=None, cancel=None):
        self._record("run_hidden", path=Path(path), args=list(args), elevate=elevate,
                     timeout=timeout)
        return self.run_result

    def run_special_setup(self, path, *, timeout=None, cancel=None):
        self._record("run_special_setup", path=Path(path))
        return self.setup_exit_code

    # ── Environment / state ─────────────────────────────────────

    def app_directories(self) -> AppDirectories:
        self._record("app_directories")
        return self.directories

    def is_host_app_running(self) -> bool:
        self._record("is_host_app_running")
        return self.running

    def query_installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        ids = list(package_ids)
        self._record("query_installed_versions", package_ids=ids)
        return {pid: self.installed.get(pid, "") for pid in ids}

    def record_installed(self, package_id: str, version: str) -> None:
        self._record("record_installed", package_id=package_id, version=version)
        self.installed[package_id] = version

    def record_removed(self, package_id: str) -> None:
        self._record("record_removed", package_id=package_id)
        self.installed.pop(package_id, None)


class MockLoginSurface(LoginSurface):
    """Login surface that completes the login as soon as it is opened."""

    def __init__(self, *, auto_complete: bool = True, fail_close: bool = False):
        self.auto_complete = auto_complete
        self.fail_close = fail_close
        self.open_count = 0
        self.close_count = 0
        self._subscribers: list[Callable[[], None]] = []

    @property
    def surface_id(self) -> str:
        return "mock-login"

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def open(self) -> None:
        self.open_count += 1
        if self.auto_complete:
            self.complete_login()

    def close(self) -> None:
        self.close_count += 1
        if self.fail_close:
            raise RuntimeError("surface already gone")

    def complete_login(self) -> None:
        for callback in list(self._subscribers):
            callback()

    def subscribe_login_complete(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe
