"""
Adapter base — the contract between the installer engine and the host.

The engine never touches the network, the filesystem or child
processes directly.  Every side effect goes through a ``HostBridge``;
storefront logins go through a ``LoginSurface``.

Unlike result-returning adapters, host commands raise on failure.
The engine wraps whatever they raise into a ``StepFailedError`` and
keeps the original as ``__cause__``.

To create a new host:
    1. Subclass HostBridge
    2. Implement every abstract command
    3. Hand an instance to ``PackageInstaller``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from catalog_installer.core.services.installer.domain.cancellation import CancelToken


# ── Value types ─────────────────────────────────────────────────


@dataclass(frozen=True)
class AppDirectories:
    """Directories substituted into step templates."""

    app_dir: Path
    plugins_dir: Path
    scripts_dir: Path
    data_dir: Path


@dataclass(frozen=True)
class TransferProgress:
    """One progress signal from a running transfer.

    ``total`` is ``None`` when the server did not announce a length.
    """

    task_id: str
    read: int
    total: int | None = None


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


ProgressCallback = Callable[[TransferProgress], None]


# ── Host bridge ─────────────────────────────────────────────────


class HostBridge(ABC):
    """Abstract host: transfers, archives, filesystem, processes, state."""

    @property
    def name(self) -> str:
        return type(self).__name__

    # Transfers

    @abstractmethod
    def download(
        self,
        url: str,
        dest_dir: Path,
        *,
        task_id: str,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Path:
        """Fetch ``url`` into ``dest_dir`` and return the written file."""

    @abstractmethod
    def download_authenticated(
        self,
        url: str,
        dest_dir: Path,
        *,
        task_id: str,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Path:
        """Fetch a storefront URL with the stored session.

        Raises ``AuthRequiredError`` when no valid session exists.
        """

    @abstractmethod
    def cloud_drive_download(
        self,
        file_id: str,
        dest_dir: Path,
        *,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Path:
        """Fetch a cloud-drive file.  Progress signals carry ``file_id`` as task id."""

    # Archives

    @abstractmethod
    def extract_archive(self, archive: Path, dest: Path) -> None:
        """Unpack a regular archive into ``dest``."""

    @abstractmethod
    def extract_self_extracting_archive(self, archive: Path, dest: Path) -> None:
        """Unpack a self-extracting executable into ``dest``."""

    # Filesystem

    @abstractmethod
    def copy_by_pattern(self, src: str, dest: str) -> int:
        """Copy everything matching ``src`` (path or glob) into ``dest``.

        Returns:
            Number of files copied.
        """

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Remove a file or tree.  False when nothing existed at ``path``."""

    # Processes

    @abstractmethod
    def run_hidden(
        self,
        path: Path,
        args: Iterable[str] = (),
        *,
        elevate: bool = False,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> ProcessResult:
        """Launch without a visible window and wait for exit."""

    @abstractmethod
    def run_special_setup(
        self,
        path: Path,
        *,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> int:
        """Run the output-plugin setup program; returns its exit code."""

    # Environment and state

    @abstractmethod
    def app_directories(self) -> AppDirectories:
        """Resolve the host application's directories."""

    @abstractmethod
    def is_host_app_running(self) -> bool:
        """Whether the host application currently has a live process."""

    @abstractmethod
    def query_installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        """Installed version per id; ``""`` for packages not installed."""

    @abstractmethod
    def record_installed(self, package_id: str, version: str) -> None:
        """Persist that ``package_id`` is installed at ``version``."""

    @abstractmethod
    def record_removed(self, package_id: str) -> None:
        """Forget ``package_id`` in the installed-state store."""


# ── Login surface ───────────────────────────────────────────────


class LoginSurface(ABC):
    """A place where the user signs in to the storefront."""

    @property
    @abstractmethod
    def surface_id(self) -> str:
        """Stable identifier of this surface."""

    @abstractmethod
    def open(self) -> None:
        """Show the login page."""

    @abstractmethod
    def close(self) -> None:
        """Dismiss the surface.  Must be safe when it was never opened."""

    @abstractmethod
    def subscribe_login_complete(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` for the login-complete signal.

        Returns:
            A function that removes the subscription.
        """
