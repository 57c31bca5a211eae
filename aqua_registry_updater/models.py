"""Data models for aqua-registry-updater.

These Pydantic models represent the persisted scan state and the values
passed between the scheduler, the per-package pipeline and the templates.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Package(BaseModel):
    """A package of the registry.

    Attributes:
        name: Slash separated identifier (``owner/repo[/subpath]``) matching
              the directory of the package definition under ``pkgs/``.
    """

    name: str


class StateData(BaseModel):
    """The persisted package list (``data.json``).

    Order is meaningful: it is the rotation order of the scheduler, not a
    priority. Names are unique after reconciliation.
    """

    packages: list[Package] = Field(default_factory=list)

    def names(self) -> list[str]:
        return [pkg.name for pkg in self.packages]


class RedirectInfo(BaseModel):
    """A repository transfer detected for a package.

    Attributes:
        repo_owner: Owner the package currently points at.
        repo_name: Repository name the package currently points at.
        new_repo_owner: Owner after the transfer.
        new_repo_name: Repository name after the transfer.
        new_package_name: Package name after renaming the definition.
    """

    repo_owner: str
    repo_name: str
    new_repo_owner: str
    new_repo_name: str
    new_package_name: str


class Outcome(str, Enum):
    UPDATED = "updated"
    REDIRECTED = "redirected"
    SCAFFOLDED = "scaffolded"
    CURRENT = "current"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    ERRORED = "errored"


class PackageResult(BaseModel):
    """Result of handling one package.

    Attributes:
        consumed: Whether handling the package used a unit of the run's
                  budget (``limit``).
        outcome: What happened to the package, for the run log.
        pr_number: Number of the pull request opened for it, if any.
    """

    consumed: bool
    outcome: Outcome
    pr_number: int | None = None


class BatchResult(BaseModel):
    """Progress of one scheduler pass over the package list.

    The orchestrator owns this value for the whole run so that the state
    write-back can rotate the list at ``stop_index`` whatever ends the loop.

    Attributes:
        stop_index: Index of the first package not visited this run.
        processed: Budget units consumed.
        cancelled: The loop was interrupted before finishing.
        outcomes: Outcome per visited package name, in visiting order.
    """

    stop_index: int = 0
    processed: int = 0
    cancelled: bool = False
    outcomes: dict[str, Outcome] = Field(default_factory=dict)


class TemplateParams(BaseModel):
    """Values available to the pull request templates as ``{{.Field}}``."""

    PackageName: str = ""
    RepoOwner: str = ""
    RepoName: str = ""
    CompareURL: str = ""
    ReleaseURL: str = ""
    NewVersion: str = ""
    CurrentVersion: str = ""
    NewRepoOwner: str = ""
    NewRepoName: str = ""
    NewPackageName: str = ""
