"""Exception hierarchy for aqua-registry-updater.

Fatal errors (config, state pull, state push) abort the run; per-package
errors are logged by the scheduler and the run goes on with the next package.
"""

from __future__ import annotations


class UpdaterError(Exception):
    """Base exception for aqua-registry-updater errors."""


class ConfigError(UpdaterError):
    """The configuration file or the environment is missing or invalid."""


class StateUnavailableError(UpdaterError):
    """The persisted package list could not be pulled."""


class StatePersistError(UpdaterError):
    """The rotated package list could not be written or pushed."""


class PackageError(UpdaterError):
    """A single package could not be handled. Never aborts the run.

    Attributes:
        consumed: Whether the failed attempt still counts against the run's
                  package limit.
    """

    def __init__(self, message: str, *, consumed: bool = True) -> None:
        super().__init__(message)
        self.consumed = consumed


class PackageLineNotFoundError(PackageError):
    """pkg.yaml has no `- name: <package>@<version>` line."""


class VersionParseError(PackageError):
    """A version token has no parsable version suffix."""


class TemplateError(PackageError):
    """A pull request template could not be rendered."""


class CommandError(PackageError):
    """An external command exited with a non-zero status."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str = "") -> None:
        self.cmd = args
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"{args[0]} exited with status {returncode}{detail}")


class RedirectCheckError(UpdaterError):
    """The repository transfer check failed. The package falls through to the update."""


class RunCancelled(BaseException):
    """The run received SIGTERM.

    A BaseException like KeyboardInterrupt: per-package handlers never catch it.
    """
