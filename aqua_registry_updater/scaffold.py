"""Re-scaffolding of package definitions.

With ``scaffold: true`` the updater regenerates the registry.yaml of each
``github_release`` package with ``aqua gr`` instead of bumping its version,
and opens one pull request per package.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from aqua_registry_updater.config import Templates
from aqua_registry_updater.errors import PackageError
from aqua_registry_updater.github import PullRequests
from aqua_registry_updater.models import Outcome, Package, PackageResult, TemplateParams
from aqua_registry_updater.pkgfile import PKG_FILE, REGISTRY_FILE, package_dir
from aqua_registry_updater.shell import Tools
from aqua_registry_updater.templates import render_template

logger = logging.getLogger(__name__)

SCHEMA_HEADER = (
    "# yaml-language-server: $schema="
    "https://raw.githubusercontent.com/aquaproj/aqua/main/json-schema/registry.json\n"
)


def scaffold_branch(package_name: str) -> str:
    return f"aqua-registry-updater-scaffold-{package_name}"


def load_package_info(path: Path) -> dict:
    """Return the single package entry of a package's registry.yaml.

    Raises:
        PackageError: If the file can't be read or doesn't define exactly one
                      package. Not counted against the limit.
    """
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise PackageError(f"read registry.yaml: {exc}", consumed=False) from exc
    except yaml.YAMLError as exc:
        raise PackageError(f"unmarshal registry.yaml as YAML: {exc}", consumed=False) from exc
    pkgs = doc.get("packages") if isinstance(doc, dict) else None
    if not pkgs:
        raise PackageError("registry.yaml is empty", consumed=False)
    if not isinstance(pkgs, list):
        raise PackageError("packages must be a list", consumed=False)
    if len(pkgs) != 1:
        raise PackageError("registry.yaml must have only one package", consumed=False)
    if not isinstance(pkgs[0], dict):
        raise PackageError("package is nil", consumed=False)
    return pkgs[0]


class Scaffolder:
    """Re-scaffold one package at a time.

    Args:
        root: Root of the registry checkout.
        tools: External tools (``aqua gr``, ``aqua-registry gr``, ``ghcp``).
        pull_requests: Pull request client.
        templates: Compiled templates; the scaffold_* pair is used.
    """

    def __init__(
        self, root: Path, tools: Tools, pull_requests: PullRequests, templates: Templates
    ) -> None:
        self.root = root
        self.tools = tools
        self.pull_requests = pull_requests
        self.templates = templates

    def scaffold(self, pkg: Package) -> PackageResult:
        branch = scaffold_branch(pkg.name)
        if self.pull_requests.branch_exists(branch):
            logger.info("branch %s already exists", branch)
            return PackageResult(consumed=True, outcome=Outcome.SKIPPED)

        pkg_dir = package_dir(self.root, pkg.name)
        info = load_package_info(pkg_dir / REGISTRY_FILE)
        if info.get("type") != "github_release":
            return PackageResult(consumed=False, outcome=Outcome.SKIPPED)
        if str(info.get("version_constraint", "")).lower() == "false":
            return PackageResult(consumed=False, outcome=Outcome.SKIPPED)

        logger.info("re-scaffolding pkg_name=%s", pkg.name, extra={"pkg_name": pkg.name})
        rel_dir = Path("pkgs", *pkg.name.split("/"))
        try:
            (pkg_dir / PKG_FILE).unlink(missing_ok=True)
        except OSError as exc:
            raise PackageError(f"remove pkg.yaml: {exc}", consumed=False) from exc

        registry = self.tools.scaffold_registry(pkg.name, (rel_dir / PKG_FILE).as_posix())
        try:
            (pkg_dir / REGISTRY_FILE).write_text(
                SCHEMA_HEADER + registry + "\n", encoding="utf-8"
            )
        except OSError as exc:
            raise PackageError(f"write registry.yaml: {exc}") from exc
        self.tools.generate_registry()

        params = TemplateParams(
            PackageName=pkg.name,
            RepoOwner=str(info.get("repo_owner") or ""),
            RepoName=str(info.get("repo_name") or ""),
        )
        title = render_template(self.templates.compiled["scaffold_pr_title"], params)
        body = render_template(self.templates.compiled["scaffold_pr_body"], params)
        self.tools.create_branch_with_commit(
            branch,
            title,
            [
                REGISTRY_FILE,
                (rel_dir / REGISTRY_FILE).as_posix(),
                (rel_dir / PKG_FILE).as_posix(),
            ],
        )
        number = self.pull_requests.create_pull_request(branch, title, body)
        logger.info("created a pull request #%d", number)
        return PackageResult(consumed=True, outcome=Outcome.SCAFFOLDED, pr_number=number)
