"""
L1 Domain — ``__init__.py`` re-exports the pure installer types.

Nothing in this layer touches the host: errors, cancellation, the
per-run context, template expansion and progress math.
"""

from catalog_installer.core.services.installer.domain.cancellation import (  # noqa: F401
    CancelToken,
)
from catalog_installer.core.services.installer.domain.context import (  # noqa: F401
    ExecutionContext,
)
from catalog_installer.core.services.installer.domain.errors import (  # noqa: F401
    ArchiveError,
    AuthRequiredError,
    CancelledError,
    DescriptorError,
    InstallerError,
    MissingDownloadError,
    PreconditionFailedError,
    ProcessTimeoutError,
    SourceUnresolvedError,
    StepExecutionError,
    StepFailedError,
    TransferError,
    UnsupportedActionError,
)
from catalog_installer.core.services.installer.domain.macros import (  # noqa: F401
    MACRO_NAMES,
    expand_macros,
)
from catalog_installer.core.services.installer.domain.progress import (  # noqa: F401
    StepProgressTracker,
    build_progress,
    emit,
    step_label,
)
