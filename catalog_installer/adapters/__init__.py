"""Adapters — host bindings for the installer engine.

Public re-exports for convenient access.
"""

from catalog_installer.adapters.base import (
    AppDirectories,
    HostBridge,
    LoginSurface,
    ProcessResult,
    TransferProgress,
)
from catalog_installer.adapters.mock import MockHost, MockLoginSurface

__all__ = [
    "AppDirectories",
    "HostBridge",
    "LoginSurface",
    "MockHost",
    "MockLoginSurface",
    "ProcessResult",
    "TransferProgress",
]
