"""
L5 Orchestration — ``__init__.py`` re-exports the run drivers.
"""

from catalog_installer.core.services.installer.orchestration.auth_flow import (  # noqa: F401
    AuthFlowController,
    AuthState,
)
from catalog_installer.core.services.installer.orchestration.orchestrator import (  # noqa: F401
    HOST_RUNNING_MESSAGE,
    PackageInstaller,
)
