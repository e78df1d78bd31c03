"""
L2 Resolver — ``__init__.py`` re-exports source resolution.

Resolvers READ from the network but never write to the system.
"""

from catalog_installer.core.services.installer.resolver.github_release import (  # noqa: F401
    GitHubReleaseResolver,
)
from catalog_installer.core.services.installer.resolver.source_resolution import (  # noqa: F401
    ResolvedSource,
    SourceResolver,
)
