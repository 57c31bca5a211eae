"""Reading and rewriting the pinned version line of pkg.yaml.

By convention the second line of ``pkgs/<name>/pkg.yaml`` pins the package
(``  - name: cli/cli@v2.0.0``). Only that line is rewritten, so the rest of the
file keeps its formatting without a YAML round-trip.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from aqua_registry_updater.errors import PackageLineNotFoundError

PKGS_DIR = "pkgs"
PKG_FILE = "pkg.yaml"
REGISTRY_FILE = "registry.yaml"


@dataclass(frozen=True)
class LineUpdate:
    """Result of replace_version_line().

    Attributes:
        content: File content after the replacement (unchanged if not changed).
        new_version: Version suffix of the generated line, or "".
        changed: Whether the content differs from the original.
    """

    content: str
    new_version: str
    changed: bool


def package_dir(root: Path, package_name: str) -> Path:
    return root / PKGS_DIR / Path(*package_name.split("/"))


def package_file(root: Path, package_name: str) -> Path:
    return package_dir(root, package_name) / PKG_FILE


def extract_current_version(package_name: str, content: str) -> str:
    """Return the version pinned by ``- name: <package_name>@<version>``.

    The first matching line wins.

    Raises:
        PackageLineNotFoundError: If no line pins the package.
    """
    pattern = re.compile(rf"- name: {re.escape(package_name)}@(\S+)")
    match = pattern.search(content)
    if match is None:
        raise PackageLineNotFoundError(f"no '- name: {package_name}@<version>' line")
    return match.group(1)


def replace_version_line(content: str, generated_line: str) -> LineUpdate:
    """Pin the file to the version in ``generated_line``.

    ``generated_line`` is the generator output, either ``name@version`` or
    ``- name: name@version``. The second line of the file is replaced with it,
    keeping the original indentation.

    Returns a LineUpdate with ``changed=False`` (and the content untouched) if
    the generated line has nothing to pin or already matches the file.

    Examples:
        replace_version_line("packages:\\n  - name: a/b@v1.0.0\\n", "a/b@v1.1.0")
        → LineUpdate("packages:\\n  - name: a/b@v1.1.0\\n", "v1.1.0", True)
    """
    token = generated_line.strip()
    if "@" not in token:
        return LineUpdate(content=content, new_version="", changed=False)
    new_version = token[token.index("@") + 1 :]
    if not token.startswith("- "):
        token = f"- name: {token}"

    lines = content.split("\n")
    if len(lines) < 2:
        return LineUpdate(content=content, new_version=new_version, changed=False)
    if lines[1].strip() == token:
        return LineUpdate(content=content, new_version=new_version, changed=False)

    indent = lines[1][: len(lines[1]) - len(lines[1].lstrip())]
    lines[1] = indent + token
    return LineUpdate(content="\n".join(lines), new_version=new_version, changed=True)


def read_package_file(root: Path, package_name: str) -> str:
    """Read pkgs/<name>/pkg.yaml. Raises OSError if it can't be read."""
    return package_file(root, package_name).read_text(encoding="utf-8")


def write_package_file(root: Path, package_name: str, content: str) -> None:
    package_file(root, package_name).write_text(content, encoding="utf-8")
