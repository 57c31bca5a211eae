"""Package discovery and reconciliation with the persisted list.

Packages are found by walking ``pkgs/`` for ``pkg.yaml`` files. Newly found
packages are appended to the end of the persisted list; existing entries
keep their position and are never removed, so a transiently unreadable
directory can't shrink the rotation.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from aqua_registry_updater.models import Package, StateData
from aqua_registry_updater.pkgfile import PKG_FILE, PKGS_DIR

logger = logging.getLogger(__name__)


def list_package_files(root: Path) -> list[Path]:
    """Find every pkgs/**/pkg.yaml under ``root``, sorted.

    Directories that can't be read are logged and skipped.
    """
    pkgs = root / PKGS_DIR
    found: list[Path] = []

    def on_error(exc: OSError) -> None:
        logger.warning("skipping unreadable directory %s: %s", exc.filename, exc.strerror)

    for dirpath, _dirnames, filenames in os.walk(pkgs, onerror=on_error):
        if PKG_FILE in filenames:
            found.append(Path(dirpath) / PKG_FILE)
    return sorted(found)


def package_name_from_path(root: Path, path: Path) -> str:
    """Derive the package name from ``<root>/pkgs/<name>/pkg.yaml``.

    Examples:
        pkgs/cli/cli/pkg.yaml → "cli/cli"
        pkgs/kubernetes/kubernetes/kubectl/pkg.yaml → "kubernetes/kubernetes/kubectl"
    """
    rel = path.parent.relative_to(root / PKGS_DIR)
    return rel.as_posix()


def discover_packages(root: Path) -> list[str]:
    """Return the names of all packages defined under ``root``."""
    return [package_name_from_path(root, p) for p in list_package_files(root)]


def reconcile(state: StateData, discovered: Iterable[str]) -> StateData:
    """Merge discovered package names into the persisted list.

    Unknown names are appended at the end in discovery order. Existing
    entries keep their order and are kept even if they weren't discovered.

    Example:
        reconcile(["a", "b"], ["b", "c"]) → ["a", "b", "c"]
    """
    packages: list[Package] = []
    known: set[str] = set()
    # Collapse duplicates a hand-edited data.json may contain, first one wins
    for pkg in state.packages:
        if pkg.name not in known:
            packages.append(pkg)
            known.add(pkg.name)
    added = 0
    for name in discovered:
        if name in known:
            continue
        packages.append(Package(name=name))
        known.add(name)
        added += 1
    if added:
        logger.info("appended %d new packages", added)
    return StateData(packages=packages)
