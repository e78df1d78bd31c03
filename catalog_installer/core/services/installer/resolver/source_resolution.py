"""
L2 Resolver — Download source → fetchable location.

Resolution happens lazily, when a ``download`` step actually runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from catalog_installer.core.models.package import SourceSpec
from catalog_installer.core.services.installer.domain.errors import SourceUnresolvedError
from catalog_installer.core.services.installer.resolver.github_release import (
    GitHubReleaseResolver,
)

logger = logging.getLogger(__name__)

SourceKind = Literal["direct", "github", "google_drive", "booth"]


@dataclass(frozen=True)
class ResolvedSource:
    """Where to fetch from.  Drive sources carry ``file_id`` instead of ``url``."""

    kind: SourceKind
    url: str = ""
    file_id: str = ""

    @property
    def needs_auth(self) -> bool:
        return self.kind == "booth"


class SourceResolver:
    def __init__(self, github: GitHubReleaseResolver | None = None):
        self._github = github or GitHubReleaseResolver()

    def resolve(self, source: SourceSpec | None) -> ResolvedSource:
        """Resolve ``source``.

        Raises:
            SourceUnresolvedError: no source, or it resolved to nothing.
        """
        if source is None:
            raise SourceUnresolvedError("package has no download source")

        if source.google_drive is not None:
            return ResolvedSource(kind="google_drive", file_id=source.google_drive.id)

        if source.booth:
            return ResolvedSource(kind="booth", url=source.booth)

        if source.github is not None:
            url = self._github.resolve(source.github)
            if not url:
                gh = source.github
                detail = f" matching {gh.pattern!r}" if gh.pattern else ""
                tag = f" at tag {gh.tag}" if gh.tag else ""
                raise SourceUnresolvedError(
                    f"no GitHub release asset{detail} for {gh.owner}/{gh.repo}{tag}"
                )
            return ResolvedSource(kind="github", url=url)

        if not source.direct:
            raise SourceUnresolvedError("download URL is empty")
        return ResolvedSource(kind="direct", url=source.direct)
