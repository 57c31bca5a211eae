"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from aqua_registry_updater.config import Config
from aqua_registry_updater.errors import CommandError
from aqua_registry_updater.models import Package, RedirectInfo, StateData


def write_pkg(root: Path, name: str, version: str, *, indent: bool = True) -> Path:
    """Create pkgs/<name>/pkg.yaml pinned to ``version``."""
    pkg_dir = root / "pkgs" / name
    pkg_dir.mkdir(parents=True, exist_ok=True)
    prefix = "  " if indent else ""
    path = pkg_dir / "pkg.yaml"
    path.write_text(f"packages:\n{prefix}- name: {name}@{version}\n")
    return path


def state_of(*names: str) -> StateData:
    return StateData(packages=[Package(name=n) for n in names])


class MemoryStore:
    """StateStore keeping the package list in memory."""

    def __init__(self, data: StateData | None = None) -> None:
        self.data = data or StateData()
        self.pushed: list[StateData] = []
        self.push_error: Exception | None = None

    def pull(self) -> StateData:
        return self.data.model_copy(deep=True)

    def push(self, data: StateData) -> None:
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(data)


class FakeTools:
    """Tools answering from a dict of generated lines and recording calls."""

    def __init__(self, generated: dict[str, str] | None = None) -> None:
        self.generated = generated or {}
        self.generate_calls: list[str] = []
        self.commits: list[dict] = []
        self.moves: list[tuple[str, str]] = []
        self.registry_generations = 0
        self.scaffolded: list[tuple[str, str]] = []
        self.fail_commit = False

    def generate_latest(self, package_name: str) -> str:
        self.generate_calls.append(package_name)
        if package_name not in self.generated:
            raise CommandError(("aqua", "g", package_name), 1, "no release")
        return self.generated[package_name]

    def create_branch_with_commit(
        self,
        branch: str,
        message: str,
        paths: Sequence[str],
        deleted: Sequence[str] = (),
    ) -> None:
        if self.fail_commit:
            raise CommandError(("ghcp", "commit"), 1, "boom")
        self.commits.append(
            {"branch": branch, "message": message, "paths": list(paths), "deleted": list(deleted)}
        )

    def move_package(self, old_name: str, new_name: str) -> None:
        self.moves.append((old_name, new_name))

    def generate_registry(self) -> None:
        self.registry_generations += 1

    def scaffold_registry(self, package_name: str, pkg_path: str) -> str:
        self.scaffolded.append((package_name, pkg_path))
        return f"packages:\n  - type: github_release\n    repo_owner: x\n    repo_name: {package_name}"


class FakePullRequests:
    """PullRequests numbering pull requests from 1."""

    def __init__(self) -> None:
        self.created: list[dict] = []
        self.auto_merged: list[int] = []
        self.existing_branches: set[str] = set()
        self.fail_auto_merge = False

    def create_pull_request(self, branch: str, title: str, body: str) -> int:
        self.created.append({"branch": branch, "title": title, "body": body})
        return len(self.created)

    def enable_auto_merge(self, number: int) -> None:
        if self.fail_auto_merge:
            raise CommandError(("gh", "pr", "merge"), 1, "auto-merge is not allowed")
        self.auto_merged.append(number)

    def branch_exists(self, branch: str) -> bool:
        return branch in self.existing_branches


class FakeRedirects:
    def __init__(self, redirects: dict[str, RedirectInfo] | None = None) -> None:
        self.redirects = redirects or {}
        self.checked: list[str] = []

    def check_redirect(self, package_name: str) -> RedirectInfo | None:
        self.checked.append(package_name)
        return self.redirects.get(package_name)


def make_config(**overrides: object) -> Config:
    raw: dict = {"container_registry": {"auth": {"username": "octocat"}}}
    raw.update(overrides)
    return Config.model_validate(raw).with_defaults("aquaproj/aqua-registry")


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def pull_requests() -> FakePullRequests:
    return FakePullRequests()
