"""
L4 Execution — ``__init__.py`` re-exports the step handlers.

These functions WRITE to the system through the host bridge:
transfers, extraction, copies, deletes and child processes.
"""

from catalog_installer.core.services.installer.execution.step_executors import (  # noqa: F401
    INSTALL_HANDLERS,
    UNINSTALL_HANDLERS,
    StepRuntime,
    execute_install_step,
    execute_uninstall_step,
)
from catalog_installer.core.services.installer.execution.workdir import (  # noqa: F401
    TMP_DIR_NAME,
    cleanup_work_dir,
    prepare_work_dir,
    sanitize_component,
    work_dir_name,
)
