"""
Catalog loader — reads package descriptors from a catalog file.

A catalog is a JSON or YAML list of package entries (or a mapping with
a ``packages`` list).  ``.json`` files are parsed as JSON, anything
else as YAML.  Only the entry being installed is validated into a
frozen ``PackageDescriptor``; a broken sibling entry does not block it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from catalog_installer.core.models.package import (
    INSTALL_ACTIONS,
    UNINSTALL_ACTIONS,
    PackageDescriptor,
)
from catalog_installer.core.services.installer.domain.errors import (
    DescriptorError,
    UnsupportedActionError,
)

logger = logging.getLogger(__name__)


def _check_actions(package_id: str, steps: Any, allowed: tuple[str, ...], phase: str) -> None:
    if steps is None:
        return
    if not isinstance(steps, list):
        raise DescriptorError(f"package {package_id}: installer.{phase} must be a list")
    for i, step in enumerate(steps):
        action = step.get("action") if isinstance(step, dict) else None
        if action not in allowed:
            raise UnsupportedActionError(
                str(action), f"package {package_id} {phase} step {i + 1}",
            )


def load_descriptor(data: Any) -> PackageDescriptor:
    """Validate one raw catalog entry.

    Raises:
        UnsupportedActionError: A step names an action with no handler.
        DescriptorError: Any other schema violation.
    """
    if not isinstance(data, dict):
        raise DescriptorError(f"package entry must be a mapping, got {type(data).__name__}")

    package_id = str(data.get("id") or "?")
    installer = data.get("installer")
    if isinstance(installer, dict):
        _check_actions(package_id, installer.get("install"), INSTALL_ACTIONS, "install")
        _check_actions(package_id, installer.get("uninstall"), UNINSTALL_ACTIONS, "uninstall")

    try:
        return PackageDescriptor.model_validate(data)
    except ValidationError as e:
        raise DescriptorError(f"invalid package {package_id}: {e}") from e


def _parse(path: Path, raw: str) -> Any:
    if path.suffix.lower() == ".json":
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise DescriptorError(f"Invalid catalog {path}: {e}") from e
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise DescriptorError(f"Invalid catalog {path}: {e}") from e


def load_catalog(path: Path) -> list[dict[str, Any]]:
    """Read the raw package entries of a catalog file.

    Entries stay unvalidated until one is selected with ``find_package``,
    so a malformed entry only affects its own package.

    Raises:
        DescriptorError: The file is unreadable or not a list of packages.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DescriptorError(f"Cannot read catalog {path}: {e}") from e

    data = _parse(path, raw)
    if isinstance(data, dict):
        data = data.get("packages", [data] if "id" in data else [])
    if not isinstance(data, list):
        raise DescriptorError(f"Expected a list of packages in {path}")

    entries = []
    for i, entry in enumerate(data):
        if isinstance(entry, dict):
            entries.append(entry)
        else:
            logger.warning("Skipping catalog entry %d in %s: not a mapping", i + 1, path)
    logger.info("Loaded catalog %s with %d entries", path, len(entries))
    return entries


def find_package(entries: list[dict[str, Any]], package_id: str) -> PackageDescriptor:
    """Validate and return the entry whose ``id`` is ``package_id``."""
    for entry in entries:
        if str(entry.get("id", "")) == package_id:
            return load_descriptor(entry)
    raise DescriptorError(f"package '{package_id}' not found in catalog")
