"""
Local host — HTTP transfers.

Plain HTTPS downloads, Google Drive downloads through the Drive v3 API
and BOOTH downloads authenticated with a Netscape-format cookie file.
Files are streamed to disk in 64 KiB chunks; each chunk produces a
``TransferProgress`` signal tagged with the caller's task id.
"""

from __future__ import annotations

import http.cookiejar
import json
import logging
import re
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from pathlib import Path
from typing import Any

from catalog_installer import __version__
from catalog_installer.adapters.base import ProgressCallback, TransferProgress
from catalog_installer.core.services.installer.domain.cancellation import CancelToken
from catalog_installer.core.services.installer.domain.errors import (
    AuthRequiredError,
    CancelledError,
    ProcessTimeoutError,
    TransferError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
USER_AGENT = f"AviUtl2Catalog/{__version__}"
DRIVE_API = "https://www.googleapis.com/drive/v3/files"
FALLBACK_NAME = "download.bin"
ERROR_BODY_LIMIT = 500

_RESERVED_CHARS = set('/\\:*?"<>|')
_SIGN_IN_RE = re.compile(r"/(users/)?sign_in", re.IGNORECASE)

UrlOpener = Callable[..., Any]


# ── File names ──────────────────────────────────────────────────


def sanitize_filename(name: str) -> str:
    """Replace separators and Windows-reserved characters with ``_``."""
    cleaned = "".join("_" if ch in _RESERVED_CHARS else ch for ch in name).strip()
    return cleaned or FALLBACK_NAME


def filename_from_url(url: str) -> str:
    """Last non-empty path segment, percent-decoded and sanitized."""
    segments = [s for s in urllib.parse.urlsplit(url).path.split("/") if s]
    if not segments:
        return FALLBACK_NAME
    return sanitize_filename(urllib.parse.unquote(segments[-1]))


def filename_from_content_disposition(header: str | None) -> str | None:
    """File name from a Content-Disposition header, if it names one."""
    if not header:
        return None
    match = re.search(r"filename\*\s*=\s*([^']*)'[^']*'([^;]+)", header, re.IGNORECASE)
    if match:
        charset = match.group(1) or "utf-8"
        try:
            return sanitize_filename(urllib.parse.unquote(match.group(2).strip(), encoding=charset))
        except LookupError:
            return sanitize_filename(urllib.parse.unquote(match.group(2).strip()))
    match = re.search(r'filename\s*=\s*"([^"]+)"', header, re.IGNORECASE)
    if not match:
        match = re.search(r"filename\s*=\s*([^;]+)", header, re.IGNORECASE)
    if match:
        return sanitize_filename(match.group(1).strip())
    return None


def _require_https(url: str) -> None:
    if not url.strip().lower().startswith("https://"):
        raise TransferError(f"Only https:// is permitted (url={url})")


def _error_body(err: urllib.error.HTTPError) -> str:
    try:
        text = err.read().decode("utf-8", errors="replace")
    except Exception:
        return ""
    try:
        message = json.loads(text)["error"]["message"]
        if isinstance(message, str):
            return message
    except (ValueError, KeyError, TypeError):
        pass
    return text[:ERROR_BODY_LIMIT]


# ── Transfer client ─────────────────────────────────────────────


class HttpTransfer:
    """Streams remote files into a destination directory."""

    def __init__(
        self,
        *,
        drive_api_key: str = "",
        cookie_file: Path | None = None,
        default_timeout: float = 300.0,
        urlopen: UrlOpener | None = None,
    ):
        self.drive_api_key = drive_api_key
        self.cookie_file = Path(cookie_file) if cookie_file else None
        self.default_timeout = default_timeout
        self._urlopen = urlopen or urllib.request.urlopen

    # ── Public commands ─────────────────────────────────────────

    def fetch(
        self,
        url: str,
        dest_dir: Path,
        *,
        task_id: str,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Path:
        _require_https(url)
        timeout = timeout or self.default_timeout
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        try:
            resp = self._urlopen(req, timeout=timeout)
        except urllib.error.HTTPError as e:
            body = _error_body(e)
            raise TransferError(f"HTTP error: {e.code}: {body}" if body else f"HTTP error: {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise TransferError(f"network error: {e}") from e

        with resp:
            target = Path(dest_dir) / filename_from_url(url)
            return self._stream(resp, target, task_id, on_progress, cancel, timeout)

    def fetch_booth(
        self,
        url: str,
        dest_dir: Path,
        *,
        task_id: str,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Path:
        _require_https(url)
        timeout = timeout or self.default_timeout
        if self.cookie_file is None or not self.cookie_file.is_file():
            raise AuthRequiredError(
                "BOOTH session cookies are not available; sign in first",
                reason="AUTH_WINDOW_MISSING",
            )

        jar = http.cookiejar.MozillaCookieJar(str(self.cookie_file))
        try:
            jar.load(ignore_discard=True, ignore_expires=True)
        except (OSError, http.cookiejar.LoadError) as e:
            raise AuthRequiredError(f"cannot read BOOTH cookies: {e}", reason="AUTH_WINDOW_MISSING") from e

        opener = urllib.request.build_opener(urllib.request.HTTPCookieProcessor(jar))
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        try:
            resp = opener.open(req, timeout=timeout)
        except urllib.error.HTTPError as e:
            if e.code in (401, 403):
                raise AuthRequiredError(f"BOOTH rejected the session (HTTP {e.code})") from e
            raise TransferError(f"HTTP error: {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise TransferError(f"network error: {e}") from e

        with resp:
            final_url = resp.geturl() or url
            if _SIGN_IN_RE.search(urllib.parse.urlsplit(final_url).path):
                raise AuthRequiredError("BOOTH redirected to the sign-in page")
            name = (
                filename_from_content_disposition(resp.headers.get("Content-Disposition"))
                or filename_from_url(final_url)
            )
            return self._stream(resp, Path(dest_dir) / name, task_id, on_progress, cancel, timeout)

    def fetch_drive(
        self,
        file_id: str,
        dest_dir: Path,
        *,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Path:
        if not self.drive_api_key:
            raise TransferError("Google Drive API key is not configured (drive_api_key)")
        timeout = timeout or self.default_timeout
        quoted = urllib.parse.quote(file_id, safe="")
        headers = {"User-Agent": USER_AGENT, "x-goog-api-key": self.drive_api_key}

        meta_req = urllib.request.Request(f"{DRIVE_API}/{quoted}?fields=name", headers=headers)
        try:
            with self._urlopen(meta_req, timeout=timeout) as resp:
                meta = json.loads(resp.read())
        except urllib.error.HTTPError as e:
            raise TransferError(f"Drive metadata {file_id}: {e.code} {_error_body(e)}") from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise TransferError(f"Drive metadata {file_id}: {e}") from e

        name = meta.get("name") if isinstance(meta, dict) else None
        if not isinstance(name, str) or not name:
            raise TransferError(f"Drive metadata {file_id}: missing name field")

        media_req = urllib.request.Request(f"{DRIVE_API}/{quoted}?alt=media", headers=headers)
        try:
            resp = self._urlopen(media_req, timeout=timeout)
        except urllib.error.HTTPError as e:
            raise TransferError(f"Drive download {file_id}: {e.code} {_error_body(e)}") from e
        except (urllib.error.URLError, OSError) as e:
            raise TransferError(f"Drive download {file_id}: {e}") from e

        with resp:
            target = Path(dest_dir) / sanitize_filename(name)
            return self._stream(resp, target, file_id, on_progress, cancel, timeout)

    # ── Streaming ───────────────────────────────────────────────

    def _stream(
        self,
        resp: Any,
        target: Path,
        task_id: str,
        on_progress: ProgressCallback | None,
        cancel: CancelToken | None,
        timeout: float,
    ) -> Path:
        length = resp.headers.get("Content-Length") if resp.headers is not None else None
        total = int(length) if length and str(length).isdigit() else None
        deadline = time.monotonic() + timeout

        target.parent.mkdir(parents=True, exist_ok=True)
        read = 0
        try:
            with open(target, "wb") as fh:
                while True:
                    if cancel is not None and cancel.cancelled:
                        raise CancelledError(cancel.reason or "download cancelled")
                    if time.monotonic() > deadline:
                        raise ProcessTimeoutError(f"download exceeded {timeout:g}s")
                    chunk = resp.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    fh.write(chunk)
                    read += len(chunk)
                    if on_progress is not None:
                        on_progress(TransferProgress(task_id=task_id, read=read, total=total))
        except (CancelledError, ProcessTimeoutError):
            target.unlink(missing_ok=True)
            raise
        except OSError as e:
            target.unlink(missing_ok=True)
            raise TransferError(f"transfer interrupted: {e}") from e

        logger.debug("downloaded %d bytes to %s", read, target)
        return target
