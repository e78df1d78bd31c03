"""
L1 Domain — Per-run execution context.

The context is an immutable value.  Step handlers return a new
context instead of mutating a shared one, so the only way to obtain a
``download_path`` is to have run a ``download`` step earlier in the
same fold.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from catalog_installer.core.services.installer.domain.errors import MissingDownloadError


@dataclass(frozen=True)
class ExecutionContext:
    """State threaded from one step to the next within a single run."""

    tmp_dir: Path
    download_path: Path | None = None

    def with_download(self, path: Path) -> ExecutionContext:
        """Return a copy carrying the path produced by a download step."""
        return replace(self, download_path=Path(path))

    def require_download(self) -> Path:
        """Return ``download_path`` or fail if no download step ran yet."""
        if self.download_path is None:
            raise MissingDownloadError(
                "no download step has run yet; {download} is undefined"
            )
        return self.download_path
