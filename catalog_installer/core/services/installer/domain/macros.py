"""
L1 Domain — Path template expansion.

Step fields may contain ``{tmp}``, ``{appDir}``, ``{pluginsDir}``,
``{scriptsDir}``, ``{dataDir}`` and ``{download}``.  Each occurrence is
replaced with the run's value; anything else, including unmatched
braces, is left as written.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from catalog_installer.core.services.installer.domain.context import ExecutionContext

if TYPE_CHECKING:
    from catalog_installer.adapters.base import AppDirectories

MACRO_NAMES = ("tmp", "appDir", "pluginsDir", "scriptsDir", "dataDir", "download")

_MACRO_RE = re.compile(r"\{(" + "|".join(MACRO_NAMES) + r")\}")


def expand_macros(value: Any, ctx: ExecutionContext, dirs: AppDirectories) -> Any:
    """Substitute every known placeholder in ``value``.

    Non-string values are returned unchanged.  ``{download}`` raises
    ``MissingDownloadError`` when no download step has run yet.
    """
    if not isinstance(value, str) or "{" not in value:
        return value

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name == "tmp":
            return str(ctx.tmp_dir)
        if name == "appDir":
            return str(dirs.app_dir)
        if name == "pluginsDir":
            return str(dirs.plugins_dir)
        if name == "scriptsDir":
            return str(dirs.scripts_dir)
        if name == "dataDir":
            return str(dirs.data_dir)
        return str(ctx.require_download())

    return _MACRO_RE.sub(_sub, value)
