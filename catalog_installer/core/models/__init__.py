"""
Domain models — Pydantic types for the installer.

    from catalog_installer.core.models import PackageDescriptor, ProgressEvent, Settings
"""

from catalog_installer.core.models.package import (
    INSTALL_ACTIONS,
    UNINSTALL_ACTIONS,
    CopyStep,
    DeleteStep,
    DownloadStep,
    ExtractSfxStep,
    ExtractStep,
    GitHubSource,
    GoogleDriveSource,
    InstallerSpec,
    PackageDescriptor,
    RunAuoSetupStep,
    RunStep,
    SourceSpec,
)
from catalog_installer.core.models.progress import Phase, ProgressEvent
from catalog_installer.core.models.settings import Settings

__all__ = [
    # package.py
    "INSTALL_ACTIONS",
    "UNINSTALL_ACTIONS",
    "CopyStep",
    "DeleteStep",
    "DownloadStep",
    "ExtractSfxStep",
    "ExtractStep",
    "GitHubSource",
    "GoogleDriveSource",
    "InstallerSpec",
    "PackageDescriptor",
    "RunAuoSetupStep",
    "RunStep",
    "SourceSpec",
    # progress.py
    "Phase",
    "ProgressEvent",
    # settings.py
    "Settings",
]
