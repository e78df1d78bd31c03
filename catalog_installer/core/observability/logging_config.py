"""
Logging configuration — one setup call per process.

The CLI calls ``setup_logging`` once; every module that does
``logger = logging.getLogger(__name__)`` inherits it.

Level precedence:
    --debug / --verbose / --quiet  >  CATALOG_LOG_LEVEL  >  WARNING

File output is optional: CATALOG_LOG_FILE names the file,
CATALOG_LOG_FILE_LEVEL its level.  The file rotates at
``LOG_FILE_MAX_BYTES`` keeping ``LOG_FILE_BACKUPS`` old copies.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# ── Formats ─────────────────────────────────────────────────────

_CONSOLE_FORMATS = {
    # level ceiling → (format, datefmt)
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s %(message)s", "%H:%M:%S"),
}
_CONSOLE_DEFAULT = ("%(message)s", None)

_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

# Loggers that stay at WARNING unless we are debugging
_NOISY_LOGGERS = ("urllib3", "psutil", "concurrent.futures")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: Console level name.
        log_file: Optional log file path; parent directories are created.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Keep ``_NOISY_LOGGERS`` at WARNING above DEBUG.
    """
    console_level = _parse_level(level)

    fmt, datefmt = _CONSOLE_DEFAULT
    for ceiling in sorted(_CONSOLE_FORMATS):
        if console_level <= ceiling:
            fmt, datefmt = _CONSOLE_FORMATS[ceiling]
            break

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(fh)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # logging errors are swallowed
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown names fall back to WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
