"""
L4 Execution — Per-package working directory.

Each run gets ``<work_root>/<id>-<version>`` with every character
outside ``[A-Za-z0-9._-]`` replaced by ``_``, so concurrent runs of
different packages never share a directory.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

TMP_DIR_NAME = "installer-tmp"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_component(value: str) -> str:
    return _UNSAFE_RE.sub("_", value)


def work_dir_name(package_id: str, version: str = "") -> str:
    return sanitize_component(f"{package_id}-{version or 'latest'}")


def prepare_work_dir(work_root: Path, package_id: str, version: str = "") -> Path:
    """Create (if needed) and return the run's working directory."""
    path = Path(work_root) / work_dir_name(package_id, version)
    path.mkdir(parents=True, exist_ok=True)
    return path


def cleanup_work_dir(path: Path) -> bool:
    """Remove a run's working directory.  Failures are logged, not raised."""
    try:
        if path.exists():
            shutil.rmtree(path)
            logger.debug("removed work dir %s", path)
            return True
    except OSError as e:
        logger.warning("could not remove work dir %s: %s", path, e)
    return False
