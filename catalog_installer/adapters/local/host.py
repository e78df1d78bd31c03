"""
Local host — the real ``HostBridge`` for this machine.

Composes the transfer client, archive helpers, filesystem helpers,
process runner and the ``installed.json`` store.  Directories come
from ``Settings``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from catalog_installer.adapters.base import AppDirectories, HostBridge, ProcessResult
from catalog_installer.adapters.local import archive, filesystem, process
from catalog_installer.adapters.local.login import BrowserLoginSurface
from catalog_installer.adapters.local.transfer import HttpTransfer
from catalog_installer.core.models.settings import Settings
from catalog_installer.core.persistence.installed_map import (
    add_installed,
    installed_map_path,
    load_installed_map,
    remove_installed,
)
from catalog_installer.core.services.installer.domain.errors import StepExecutionError

logger = logging.getLogger(__name__)

BOOTH_COOKIE_FILE = "booth-cookies.txt"
CORE_PACKAGE_ID = "Kenkun.AviUtlExEdit2"


class LocalHost(HostBridge):
    def __init__(self, settings: Settings, config_dir: Path, *, transfer: HttpTransfer | None = None):
        self.settings = settings
        self.config_dir = Path(config_dir)
        self.installed_path = installed_map_path(self.config_dir)
        self.transfer = transfer or HttpTransfer(
            drive_api_key=settings.drive_api_key,
            cookie_file=self.cookie_file,
            default_timeout=settings.download_timeout,
        )

    @property
    def cookie_file(self) -> Path:
        if self.settings.booth_cookie_file:
            return Path(self.settings.booth_cookie_file).expanduser()
        return self.config_dir / BOOTH_COOKIE_FILE

    def login_surface(self) -> BrowserLoginSurface:
        return BrowserLoginSurface(self.settings.booth_login_url, self.cookie_file)

    # ── Transfers ───────────────────────────────────────────────

    def download(self, url, dest_dir, *, task_id, on_progress=None, cancel=None, timeout=None):
        return self.transfer.fetch(
            url, dest_dir, task_id=task_id, on_progress=on_progress, cancel=cancel, timeout=timeout,
        )

    def download_authenticated(self, url, dest_dir, *, task_id, on_progress=None, cancel=None,
                               timeout=None):
        return self.transfer.fetch_booth(
            url, dest_dir, task_id=task_id, on_progress=on_progress, cancel=cancel, timeout=timeout,
        )

    def cloud_drive_download(self, file_id, dest_dir, *, on_progress=None, cancel=None,
                             timeout=None):
        return self.transfer.fetch_drive(
            file_id, dest_dir, on_progress=on_progress, cancel=cancel, timeout=timeout,
        )

    # ── Archives / filesystem ───────────────────────────────────

    def extract_archive(self, archive_path: Path, dest: Path) -> None:
        archive.extract_zip(Path(archive_path), Path(dest))

    def extract_self_extracting_archive(self, archive_path: Path, dest: Path) -> None:
        archive.extract_sfx(Path(archive_path), Path(dest))

    def copy_by_pattern(self, src: str, dest: str) -> int:
        return filesystem.copy_by_pattern(src, dest)

    def delete(self, path: str) -> bool:
        return filesystem.delete_path(path)

    # ── Processes ───────────────────────────────────────────────

    def run_hidden(self, path, args=(), *, elevate=False, timeout=None, cancel=None) -> ProcessResult:
        return process.run_hidden(
            Path(path), args, elevate=elevate, timeout=timeout, cancel=cancel,
            cwd=Path(path).parent,
        )

    def setup_args(self) -> list[str]:
        """Arguments for the output-plugin setup program.

        Portable installs point the setup at the app root, which requires
        the core package to be installed and ``app_root`` to be set.
        """
        s = self.settings
        if not s.portable_mode:
            return ["-aviutldir-default"]
        if not self.installed_map().get(CORE_PACKAGE_ID, "").strip():
            raise StepExecutionError(
                f"{CORE_PACKAGE_ID} is not installed; install it before running the setup",
            )
        if not s.app_root:
            raise StepExecutionError("app_root is not set in settings (required in portable mode)")
        return ["-aviutldir", str(Path(s.app_root).expanduser())]

    def run_special_setup(self, path, *, timeout=None, cancel=None) -> int:
        args = self.setup_args()
        logger.info("Running setup %s (%s mode)", path,
                    "portable" if self.settings.portable_mode else "standard")
        result = process.run_hidden(Path(path), args, timeout=timeout, cancel=cancel,
                                    cwd=Path(path).parent)
        if result.stderr:
            logger.debug("setup stderr: %s", result.stderr[-500:])
        return result.exit_code

    # ── Environment / state ─────────────────────────────────────

    def app_directories(self) -> AppDirectories:
        s = self.settings
        return AppDirectories(
            app_dir=s.resolved_app_root(),
            plugins_dir=s.resolved_plugin_dir(),
            scripts_dir=s.resolved_script_dir(),
            data_dir=s.resolved_data_dir(),
        )

    def is_host_app_running(self) -> bool:
        return process.is_process_running(self.settings.host_process_name)

    def query_installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        mapping = load_installed_map(self.installed_path)
        return {pid: mapping.get(pid, "") for pid in package_ids}

    def installed_map(self) -> dict[str, str]:
        return load_installed_map(self.installed_path)

    def record_installed(self, package_id: str, version: str) -> None:
        add_installed(self.installed_path, package_id, version)

    def record_removed(self, package_id: str) -> None:
        remove_installed(self.installed_path, package_id)
