"""
L1 Domain — Installer error taxonomy.

Every failure that leaves the engine is an ``InstallerError``.  Step
handlers raise the narrow types below; the orchestrator wraps them in
``StepFailedError`` with positional context and keeps the original as
``__cause__``.
"""

from __future__ import annotations


class InstallerError(Exception):
    """Root of every error raised by the install/uninstall engine."""


class PreconditionFailedError(InstallerError):
    """The host application is running (or its state is unknown)."""


class DescriptorError(InstallerError):
    """A package descriptor could not be validated."""


class UnsupportedActionError(InstallerError):
    """A step names an action with no handler."""

    def __init__(self, action: str, detail: str = ""):
        self.action = action
        message = f"unsupported action: {action}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class SourceUnresolvedError(InstallerError):
    """The download source could not be turned into a fetchable location."""


class AuthRequiredError(InstallerError):
    """The storefront transfer needs an authenticated session.

    ``reason`` is ``AUTH_REQUIRED`` or ``AUTH_WINDOW_MISSING``.
    """

    def __init__(self, message: str, reason: str = "AUTH_REQUIRED"):
        self.reason = reason
        super().__init__(message)


class MissingDownloadError(InstallerError):
    """A step read the download path before any download step ran."""


class StepExecutionError(InstallerError):
    """A step handler rejected its outcome (zero copies, bad exit code...)."""


class TransferError(InstallerError):
    """An HTTP or cloud-drive transfer failed."""


class ArchiveError(InstallerError):
    """Archive extraction failed."""


class ProcessTimeoutError(InstallerError):
    """A launched process or transfer exceeded its time budget."""


class CancelledError(InstallerError):
    """The run was cancelled through its ``CancelToken``."""


class StepFailedError(InstallerError):
    """A step failed; carries the step position and the original cause."""

    def __init__(
        self,
        *,
        package_id: str,
        action: str,
        index: int,
        total: int,
        cause: BaseException,
        mode: str = "installer",
    ):
        self.package_id = package_id
        self.action = action
        self.index = index
        self.total = total
        self.mode = mode
        self.prefix = (
            f"[{mode} {package_id}] step {index + 1}/{total} action={action} failed"
        )
        super().__init__(f"{self.prefix}: {cause}")

    @property
    def position(self) -> int:
        """1-based step number."""
        return self.index + 1
