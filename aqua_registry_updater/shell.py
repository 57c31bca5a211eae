"""Shell utilities and the external tools the updater drives.

Provides simple wrappers around subprocess calls, output formatting helpers,
and CommandTools, which runs the CLIs the updater depends on:

- ``aqua g <pkg>`` prints the latest ``- name: <pkg>@<version>`` line
- ``ghcp commit`` creates a branch with a commit through the GitHub API
- ``aqua-registry mv`` / ``aqua-registry gr`` rename a package and
  regenerate the root registry.yaml
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from aqua_registry_updater.errors import CommandError


def output(
    *args: str,
    input: str | None = None,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> str:
    """Run a command and return its stripped stdout.

    Args:
        *args: Command and arguments (e.g., "aqua", "g", "cli/cli").
        input: Text written to the command's stdin.
        cwd: Working directory.
        timeout: Seconds before the command is killed. None waits forever.

    Raises:
        CommandError: If the command exits non-zero, times out or is missing.
    """
    try:
        result = subprocess.run(
            args,
            input=input,
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise CommandError(args, -1, f"timed out after {exc.timeout}s") from exc
    except FileNotFoundError as exc:
        raise CommandError(args, 127, f"command not found: {args[0]}") from exc
    if result.returncode != 0:
        raise CommandError(args, result.returncode, result.stderr)
    return result.stdout.strip()


def run(*args: str, cwd: Path | None = None, timeout: float | None = None) -> None:
    """Run a command, streaming its output to the terminal.

    Unlike output(), this doesn't capture anything so users can follow the
    progress of the tool in the CI log.

    Raises:
        CommandError: If the command exits non-zero, times out or is missing.
    """
    try:
        result = subprocess.run(args, cwd=cwd, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as exc:
        raise CommandError(args, -1, f"timed out after {exc.timeout}s") from exc
    except FileNotFoundError as exc:
        raise CommandError(args, 127, f"command not found: {args[0]}") from exc
    if result.returncode != 0:
        raise CommandError(args, result.returncode)


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a run in the CI log.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


class Tools(Protocol):
    """External tools the per-package pipeline depends on."""

    def generate_latest(self, package_name: str) -> str: ...

    def create_branch_with_commit(
        self,
        branch: str,
        message: str,
        paths: Sequence[str],
        deleted: Sequence[str] = (),
    ) -> None: ...

    def move_package(self, old_name: str, new_name: str) -> None: ...

    def generate_registry(self) -> None: ...

    def scaffold_registry(self, package_name: str, pkg_path: str) -> str: ...


class CommandTools:
    """Tools implemented by the aqua, ghcp and aqua-registry CLIs.

    Args:
        root: Root of the registry checkout; commands run there.
        repository: Target ``owner/name`` for commits.
        timeout: Per-command timeout in seconds. None waits forever; the run
                 is still interruptible by SIGINT/SIGTERM.
    """

    def __init__(self, root: Path, repository: str, timeout: float | None = None) -> None:
        self.root = root
        self.repository = repository
        self.timeout = timeout

    def generate_latest(self, package_name: str) -> str:
        return output("aqua", "g", package_name, cwd=self.root, timeout=self.timeout)

    def create_branch_with_commit(
        self,
        branch: str,
        message: str,
        paths: Sequence[str],
        deleted: Sequence[str] = (),
    ) -> None:
        args = ["ghcp", "commit", "-r", self.repository, "-b", branch, "-m", message]
        if deleted:
            args += ["-d", ",".join(deleted)]
        run(*args, *paths, cwd=self.root, timeout=self.timeout)

    def move_package(self, old_name: str, new_name: str) -> None:
        run("aqua-registry", "mv", old_name, new_name, cwd=self.root, timeout=self.timeout)

    def generate_registry(self) -> None:
        run("aqua-registry", "gr", cwd=self.root, timeout=self.timeout)

    def scaffold_registry(self, package_name: str, pkg_path: str) -> str:
        """Generate registry.yaml content and write test data to ``pkg_path``."""
        return output(
            "aqua",
            "gr",
            "--out-testdata",
            pkg_path,
            package_name,
            cwd=self.root,
            timeout=self.timeout,
        )
