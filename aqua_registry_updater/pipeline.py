"""Update pipeline: pull → discover → handle a batch → rotate → push.

This module orchestrates one run of the updater:
1. Pull the persisted package list from the container registry
2. Append packages found under pkgs/ that the list doesn't know yet
3. Handle packages from the head of the list until the limit is used:
   a. follow a repository transfer (rename + transfer pull request), or
   b. re-scaffold the package (``scaffold: true``), or
   c. pin the latest version and open an auto-merged pull request
4. Rotate the list past the visited packages and push it back

Step 4 runs however step 3 ends (errors, interrupt), so successive runs keep
making progress through the whole registry.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Protocol

from aqua_registry_updater.config import Config
from aqua_registry_updater.discovery import discover_packages, reconcile
from aqua_registry_updater.errors import (
    PackageError,
    PackageLineNotFoundError,
    RedirectCheckError,
    StatePersistError,
    VersionParseError,
)
from aqua_registry_updater.github import PullRequests
from aqua_registry_updater.models import (
    BatchResult,
    Outcome,
    Package,
    PackageResult,
    RedirectInfo,
    StateData,
    TemplateParams,
)
from aqua_registry_updater.pkgfile import (
    PKG_FILE,
    REGISTRY_FILE,
    extract_current_version,
    package_file,
    read_package_file,
    replace_version_line,
    write_package_file,
)
from aqua_registry_updater.scaffold import Scaffolder
from aqua_registry_updater.scheduler import rotate, run_batch
from aqua_registry_updater.shell import Tools, step
from aqua_registry_updater.state import StateStore
from aqua_registry_updater.templates import render_template
from aqua_registry_updater.versions import compare_versions

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "aqua-registry-updater"

# Floating tags are never pinned.
FLOATING_VERSIONS = frozenset({"latest", "edge", "stable"})


class RedirectChecker(Protocol):
    def check_redirect(self, package_name: str) -> RedirectInfo | None: ...


def update_branch(package_name: str, new_version: str) -> str:
    return f"{BRANCH_PREFIX}-{package_name}-{new_version}"


def transfer_branch(package_name: str) -> str:
    return f"{BRANCH_PREFIX}-transfer-{package_name}"


def split_repository(package_name: str) -> tuple[str, str]:
    """Return ``(owner, repo)``, the first two segments of a package name.

    Raises:
        PackageError: If the name has no ``/``. Not counted against the limit.
    """
    owner, sep, rest = package_name.partition("/")
    if not sep:
        raise PackageError("pkg name doesn't have /", consumed=False)
    return owner, rest.partition("/")[0]


def update_params(package_name: str, current: str, new: str) -> TemplateParams:
    """Template values for a version update pull request.

    Owners with a dot (``golang.org/x/tools``) are not GitHub repositories:
    owner, name, compare and release URLs are left blank for them.
    """
    owner, repo = split_repository(package_name)
    if "." in owner:
        return TemplateParams(PackageName=package_name, CurrentVersion=current, NewVersion=new)
    return TemplateParams(
        PackageName=package_name,
        RepoOwner=owner,
        RepoName=repo,
        CurrentVersion=current,
        NewVersion=new,
        CompareURL=f"https://github.com/{owner}/{repo}/compare/{current}...{new}",
        ReleaseURL=f"https://github.com/{owner}/{repo}/releases/tag/{new}",
    )


def _rel_package_path(package_name: str, filename: str) -> str:
    return "/".join(["pkgs", package_name, filename])


class Updater:
    """Drive one run of the updater.

    All side effects go through the injected collaborators, so the whole
    pipeline can run against fakes.

    Args:
        root: Root of the registry checkout.
        config: Validated configuration.
        store: Where the package list is persisted.
        tools: External tools (version generation, commits, renames).
        pull_requests: Pull request client of the target repository.
        redirects: Repository transfer detector; None disables the check.
    """

    def __init__(
        self,
        root: Path,
        config: Config,
        store: StateStore,
        tools: Tools,
        pull_requests: PullRequests,
        redirects: RedirectChecker | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.store = store
        self.tools = tools
        self.pull_requests = pull_requests
        self.redirects = redirects
        self.scaffolder = Scaffolder(root, tools, pull_requests, config.templates)

    def run(self) -> BatchResult:
        """Execute one run.

        Returns:
            What happened to the visited packages.

        Raises:
            StateUnavailableError: If the package list can't be pulled.
            StatePersistError: If the rotated list can't be pushed. Raised
                after the batch; pull requests already opened stay open.
        """
        step("Pulling the package list")
        state = self.store.pull()
        logger.info("read data.json num_of_packages=%d", len(state.packages))

        step("Searching pkg.yaml from pkgs")
        discovered = discover_packages(self.root)
        logger.info("found pkg.yaml num_of_pkgs=%d", len(discovered))
        state = reconcile(state, discovered)

        step(f"Handling up to {self.config.limit} packages")
        result = BatchResult()
        persist_error: StatePersistError | None = None
        try:
            run_batch(
                state.packages,
                self.config.limit,
                self.config.ignore_packages,
                self.handle_package,
                result,
            )
        finally:
            persist_error = self.persist(state, result)
        if persist_error is not None:
            raise persist_error

        counts = Counter(outcome.value for outcome in result.outcomes.values())
        summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "none"
        logger.info("handled %d packages (%s)", result.processed, summary)
        return result

    def persist(self, state: StateData, result: BatchResult) -> StatePersistError | None:
        """Rotate the list at ``result.stop_index`` and push it.

        Returns the push error instead of raising it, so that it can't mask
        an exception already propagating out of the batch.
        """
        step("Pushing the package list")
        rotated = StateData(packages=rotate(state.packages, result.stop_index))
        try:
            self.store.push(rotated)
        except StatePersistError as exc:
            logger.error("%s", exc)
            return exc
        return None

    def handle_package(self, pkg: Package) -> PackageResult:
        """Run the per-package pipeline.

        Raises:
            PackageError: If the package couldn't be handled. ``consumed``
                          says whether it still counts against the limit.
        """
        # Entries left behind by a merged rename have no files any more
        if not package_file(self.root, pkg.name).is_file():
            raise PackageError(f"{PKG_FILE} not found", consumed=False)
        redirect = self.check_redirect(pkg.name)
        if redirect is not None:
            return self.handle_redirect(pkg, redirect)
        if self.config.scaffold:
            return self.scaffolder.scaffold(pkg)
        return self.update_package(pkg)

    def check_redirect(self, package_name: str) -> RedirectInfo | None:
        if self.redirects is None:
            return None
        try:
            return self.redirects.check_redirect(package_name)
        except RedirectCheckError as exc:
            logger.warning("%s", exc, extra={"pkg_name": package_name})
            return None

    def handle_redirect(self, pkg: Package, redirect: RedirectInfo) -> PackageResult:
        """Rename a transferred package and open a transfer pull request."""
        logger.info(
            "the package's repository was transferred pkg_name=%s repo_owner=%s repo_name=%s",
            pkg.name,
            redirect.new_repo_owner,
            redirect.new_repo_name,
            extra={"pkg_name": pkg.name},
        )
        self.tools.move_package(pkg.name, redirect.new_package_name)
        self.tools.generate_registry()

        params = TemplateParams(
            PackageName=pkg.name,
            RepoOwner=redirect.repo_owner,
            RepoName=redirect.repo_name,
            NewRepoOwner=redirect.new_repo_owner,
            NewRepoName=redirect.new_repo_name,
            NewPackageName=redirect.new_package_name,
        )
        compiled = self.config.templates.compiled
        title = render_template(compiled["transfer_pr_title"], params)
        body = render_template(compiled["transfer_pr_body"], params)

        branch = transfer_branch(pkg.name)
        self.tools.create_branch_with_commit(
            branch,
            title,
            [
                REGISTRY_FILE,
                _rel_package_path(redirect.new_package_name, REGISTRY_FILE),
                _rel_package_path(redirect.new_package_name, PKG_FILE),
            ],
            deleted=[
                _rel_package_path(pkg.name, PKG_FILE),
                _rel_package_path(pkg.name, REGISTRY_FILE),
            ],
        )
        number = self.pull_requests.create_pull_request(branch, title, body)
        logger.info("created a pull request #%d", number, extra={"pkg_name": pkg.name})
        return PackageResult(consumed=True, outcome=Outcome.REDIRECTED, pr_number=number)

    def update_package(self, pkg: Package) -> PackageResult:
        """Pin the latest version of a package and open a pull request."""
        try:
            content = read_package_file(self.root, pkg.name)
        except (OSError, UnicodeDecodeError) as exc:
            raise PackageError(f"read pkg.yaml: {exc}", consumed=False) from exc
        try:
            current_version = extract_current_version(pkg.name, content)
        except PackageLineNotFoundError as exc:
            raise PackageLineNotFoundError(f"get the current version: {exc}") from exc
        # Names without an owner segment fail here, before the generator runs
        split_repository(pkg.name)

        generated = self.tools.generate_latest(pkg.name)
        update = replace_version_line(content, generated)
        if not update.changed:
            return PackageResult(consumed=False, outcome=Outcome.CURRENT)
        new_version = update.new_version
        if new_version in FLOATING_VERSIONS:
            logger.info("ignore the floating version %s", new_version, extra={"pkg_name": pkg.name})
            return PackageResult(consumed=True, outcome=Outcome.SKIPPED)

        try:
            auto_merge = compare_versions(current_version, new_version)
        except VersionParseError as exc:
            # Still worth a pull request, but a human has to merge it
            logger.warning("compare version: %s", exc, extra={"pkg_name": pkg.name})
            auto_merge = False
        else:
            if not auto_merge:
                logger.warning(
                    "ignore the change %s -> %s (not newer or a different channel)",
                    current_version,
                    new_version,
                    extra={"pkg_name": pkg.name},
                )
                return PackageResult(consumed=True, outcome=Outcome.SKIPPED)

        try:
            write_package_file(self.root, pkg.name, update.content)
        except OSError as exc:
            raise PackageError(f"write pkg.yaml: {exc}") from exc

        params = update_params(pkg.name, current_version, new_version)
        compiled = self.config.templates.compiled
        title = render_template(compiled["pr_title"], params)
        body = render_template(compiled["pr_body"], params)

        branch = update_branch(pkg.name, new_version)
        self.tools.create_branch_with_commit(
            branch, title, [_rel_package_path(pkg.name, PKG_FILE)]
        )
        number = self.pull_requests.create_pull_request(branch, title, body)
        logger.info(
            "created a pull request #%d %s -> %s",
            number,
            current_version,
            new_version,
            extra={"pkg_name": pkg.name},
        )

        if auto_merge:
            try:
                self.pull_requests.enable_auto_merge(number)
            except PackageError as exc:
                logger.error("enable auto-merge: %s", exc, extra={"pkg_name": pkg.name})
        return PackageResult(consumed=True, outcome=Outcome.UPDATED, pr_number=number)


def initialize(store: StateStore) -> None:
    """Push an empty package list, for a registry repository that has none."""
    step("Pushing an empty package list")
    store.push(StateData())
