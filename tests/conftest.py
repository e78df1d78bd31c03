"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from catalog_installer.adapters.mock import MockHost, MockLoginSurface
from catalog_installer.core.config.catalog_loader import load_descriptor
from catalog_installer.core.context import set_config_dir
from catalog_installer.core.services.installer.orchestration.orchestrator import (
    PackageInstaller,
)


@pytest.fixture(autouse=True)
def _reset_config_dir():
    """Never let a test leak its config directory into the next one."""
    yield
    set_config_dir(None)


@pytest.fixture
def host(tmp_path: Path) -> MockHost:
    return MockHost(tmp_path / "host")


@pytest.fixture
def login_surface() -> MockLoginSurface:
    return MockLoginSurface()


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    return tmp_path / "installer-tmp"


@pytest.fixture
def installer(host: MockHost, login_surface: MockLoginSurface, work_root: Path) -> PackageInstaller:
    return PackageInstaller(host, work_root=work_root, login_surface=login_surface)


@pytest.fixture
def make_package():
    """Build a descriptor from steps, with a direct source by default."""

    def _make(
        install=None,
        uninstall=None,
        *,
        package_id: str = "pkg",
        version: str = "1.0",
        source=None,
    ):
        data = {
            "id": package_id,
            "latest-version": version,
            "installer": {
                "source": source if source is not None else {"direct": "https://example.com/pkg.zip"},
                "install": install or [],
                "uninstall": uninstall or [],
            },
        }
        return load_descriptor(data)

    return _make


@pytest.fixture
def events():
    """A list that doubles as a progress sink."""

    class _Events(list):
        def __call__(self, event):
            self.append(event)

    return _Events()
