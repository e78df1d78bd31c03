"""
Local host — archive extraction.

Zip archives are unpacked with ``zipfile``; every member is checked so
nothing lands outside the destination.  Self-extracting 7z
executables are handed to the ``7z`` command-line tool.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import zipfile
from pathlib import Path

from catalog_installer.core.services.installer.domain.errors import ArchiveError

logger = logging.getLogger(__name__)

SEVEN_ZIP_CANDIDATES = ("7z", "7zz", "7za")
SFX_TIMEOUT = 600


def _decode_member_name(member: zipfile.ZipInfo) -> str:
    """Member name, re-decoded as CP932 when the UTF-8 flag is not set.

    Archives made on Japanese Windows store names in CP932; ``zipfile``
    reads those as CP437.
    """
    name = member.filename
    if member.flag_bits & 0x800:
        return name
    try:
        return name.encode("cp437").decode("cp932")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return name


def extract_zip_safely(archive: zipfile.ZipFile, target_dir: Path) -> int:
    """Extract every member under ``target_dir``.  Returns the file count."""
    root = target_dir.resolve()
    root.mkdir(parents=True, exist_ok=True)
    count = 0
    for member in archive.infolist():
        name = _decode_member_name(member)
        if not name:
            continue
        path = Path(name.replace("\\", "/"))
        if path.is_absolute() or path.drive:
            raise ArchiveError(f"archive contains an absolute path entry: {name}")
        destination = (root / path).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise ArchiveError(f"archive contains an unsafe relative path: {name}") from None
        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as src, open(destination, "wb") as dst:
            shutil.copyfileobj(src, dst)
        count += 1
    return count


def extract_zip(archive_path: Path, dest: Path) -> int:
    logger.info("Extracting %s to %s", archive_path, dest)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            count = extract_zip_safely(archive, Path(dest))
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(f"failed to extract {archive_path}: {e}") from e
    logger.debug("Extracted %d files from %s", count, archive_path)
    return count


def find_seven_zip() -> str | None:
    for candidate in SEVEN_ZIP_CANDIDATES:
        found = shutil.which(candidate)
        if found:
            return found
    return None


def extract_sfx(archive_path: Path, dest: Path, *, timeout: float = SFX_TIMEOUT) -> None:
    """Unpack a 7z self-extracting executable with the 7z CLI."""
    tool = find_seven_zip()
    if tool is None:
        raise ArchiveError("7z command-line tool not found (tried 7z, 7zz, 7za)")
    if not Path(archive_path).is_file():
        raise ArchiveError(f"SFX archive not found: {archive_path}")

    Path(dest).mkdir(parents=True, exist_ok=True)
    cmd = [tool, "x", "-y", f"-o{dest}", str(archive_path)]
    logger.info("Extracting SFX %s to %s", archive_path, dest)
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ArchiveError(f"7z timed out after {timeout:g}s on {archive_path}") from e
    except OSError as e:
        raise ArchiveError(f"cannot run {tool}: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "")[-500:].strip()
        raise ArchiveError(f"7z decompress error (exit {result.returncode}): {detail}")
