"""
Package installer service — declarative install/uninstall engine.

Layers (each only imports from the ones above it):

    domain/         errors, cancellation, context, macros, progress
    resolver/       source → URL / file id
    execution/      step handlers, working directories
    orchestration/  runs, login flow

    from catalog_installer.core.services.installer import PackageInstaller
"""

from catalog_installer.core.services.installer.domain import (  # noqa: F401
    CancelToken,
    InstallerError,
    StepFailedError,
)
from catalog_installer.core.services.installer.orchestration import (  # noqa: F401
    PackageInstaller,
)
