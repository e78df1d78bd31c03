"""
Local host — copy and delete.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
import stat
from pathlib import Path

logger = logging.getLogger(__name__)


def _copy_file(src: Path, dest_dir: Path) -> int:
    dest_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest_dir / src.name)
    return 1


def _merge_tree(src: Path, dest_dir: Path) -> int:
    """Copy the contents of ``src`` into ``dest_dir``, overwriting files."""
    count = 0
    dest_dir.mkdir(parents=True, exist_ok=True)
    for dirpath, _dirnames, filenames in os.walk(src):
        rel = Path(dirpath).relative_to(src)
        target_dir = dest_dir / rel
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in filenames:
            shutil.copy2(Path(dirpath) / name, target_dir / name)
            count += 1
    return count


def copy_by_pattern(src: str, dest: str) -> int:
    """Copy a path or glob into ``dest``.

    Files are copied into ``dest``; directories have their contents
    merged into ``dest``.  Returns the number of files copied, 0 when
    nothing matched.
    """
    if glob.has_magic(src):
        matches = sorted(glob.glob(src))
    else:
        matches = [src] if os.path.exists(src) else []

    dest_dir = Path(dest)
    count = 0
    for match in matches:
        path = Path(match)
        if path.is_dir():
            count += _merge_tree(path, dest_dir)
        elif path.is_file():
            count += _copy_file(path, dest_dir)
    logger.debug("copied %d files from %s to %s", count, src, dest)
    return count


def delete_path(path: str) -> bool:
    """Remove a file or directory tree.  False when nothing existed."""
    target = Path(path)
    if not target.exists() and not target.is_symlink():
        return False
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        try:
            target.unlink()
        except PermissionError:
            os.chmod(target, stat.S_IWRITE)
            target.unlink()
    return True
