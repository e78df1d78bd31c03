"""
L2 Resolver — GitHub release asset lookup.

Picks the download URL of a release asset:

1. ``tag`` set: only that release is consulted.
2. Otherwise the ``latest`` release, first asset whose name matches
   ``pattern`` (or simply the first asset when there is no pattern).
3. If that yields nothing, the 30 most recent releases are scanned
   and the matching asset with the newest timestamp wins.

Network and JSON errors are logged and treated as "no asset"; the
caller gets ``""`` and decides what that means.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from datetime import datetime
from typing import Any

from catalog_installer import __version__
from catalog_installer.core.models.package import GitHubSource

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
RELEASE_SCAN_LIMIT = 30

JsonFetcher = Callable[[str], Any]


def _parse_timestamp(value: Any) -> float:
    """ISO-8601 timestamp to epoch seconds; 0 when absent or unparsable."""
    if not isinstance(value, str) or not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def _asset_timestamp(asset: dict, release: dict) -> float:
    for value in (
        asset.get("updated_at"),
        asset.get("created_at"),
        release.get("published_at"),
        release.get("created_at"),
    ):
        if value:
            return _parse_timestamp(value)
    return 0.0


def _asset_name(asset: Any) -> str:
    if not isinstance(asset, dict):
        return ""
    return str(asset.get("name") or "")


class GitHubReleaseResolver:
    """Resolve a ``GitHubSource`` to a browser download URL."""

    def __init__(
        self,
        *,
        token: str = "",
        timeout: float = 15,
        fetch_json: JsonFetcher | None = None,
    ):
        self._token = token
        self._timeout = timeout
        self._fetch_json = fetch_json or self._urlopen_json

    # ── HTTP ────────────────────────────────────────────────────

    def _urlopen_json(self, url: str) -> Any:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"catalog-installer/{__version__}",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        req = urllib.request.Request(url, headers=headers)
        with urllib.request.urlopen(req, timeout=self._timeout) as resp:
            return json.loads(resp.read())

    def _get(self, url: str) -> Any:
        try:
            return self._fetch_json(url)
        except urllib.error.HTTPError as e:
            logger.warning("GitHub API %s returned HTTP %s", url, e.code)
        except (urllib.error.URLError, OSError) as e:
            logger.warning("GitHub API %s unreachable: %s", url, e)
        except ValueError as e:
            logger.warning("GitHub API %s returned invalid JSON: %s", url, e)
        return None

    # ── Selection ───────────────────────────────────────────────

    @staticmethod
    def _first_match(release: Any, regex: re.Pattern[str] | None) -> str:
        if not isinstance(release, dict) or not isinstance(release.get("assets"), list):
            return ""
        for asset in release["assets"]:
            if regex is not None and not regex.search(_asset_name(asset)):
                continue
            url = asset.get("browser_download_url") if isinstance(asset, dict) else None
            if url:
                return str(url)
        return ""

    @staticmethod
    def _newest_match(releases: Any, regex: re.Pattern[str] | None) -> str:
        if not isinstance(releases, list):
            return ""
        best_url = ""
        best_ts = -1.0
        for release in releases:
            if not isinstance(release, dict) or not isinstance(release.get("assets"), list):
                logger.debug("skipping release without asset list")
                continue
            for asset in release["assets"]:
                if not isinstance(asset, dict) or not asset.get("browser_download_url"):
                    continue
                if regex is not None and not regex.search(_asset_name(asset)):
                    continue
                ts = _asset_timestamp(asset, release)
                # strict comparison keeps the first of equally-dated assets
                if ts > best_ts:
                    best_ts = ts
                    best_url = str(asset["browser_download_url"])
        return best_url

    def resolve(self, source: GitHubSource) -> str:
        """Return the asset URL, or ``""`` when nothing matches."""
        regex: re.Pattern[str] | None = None
        if source.pattern:
            try:
                regex = re.compile(source.pattern)
            except re.error as e:
                logger.warning(
                    "invalid asset pattern %r for %s/%s: %s",
                    source.pattern, source.owner, source.repo, e,
                )
                return ""

        owner = urllib.parse.quote(source.owner, safe="")
        repo = urllib.parse.quote(source.repo, safe="")
        base = f"{GITHUB_API}/repos/{owner}/{repo}/releases"

        if source.tag:
            tag = urllib.parse.quote(source.tag, safe="")
            url = self._first_match(self._get(f"{base}/tags/{tag}"), regex)
            logger.debug("GitHub %s/%s tag=%s → %s", source.owner, source.repo, source.tag, url or "-")
            return url

        url = self._first_match(self._get(f"{base}/latest"), regex)
        if url:
            return url

        url = self._newest_match(self._get(f"{base}?per_page={RELEASE_SCAN_LIMIT}"), regex)
        logger.debug("GitHub %s/%s release scan → %s", source.owner, source.repo, url or "-")
        return url
