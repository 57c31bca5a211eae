"""GitHub pull request operations through the gh CLI.

gh authenticates with GITHUB_TOKEN / GH_TOKEN from the environment.
"""

from __future__ import annotations

import re
from typing import Protocol
from urllib.parse import quote

from aqua_registry_updater.errors import CommandError, PackageError
from aqua_registry_updater.shell import output

BASE_BRANCH = "main"

_PR_URL_PATTERN = re.compile(r"/pull/(\d+)\s*$")


class PullRequests(Protocol):
    """Pull request capability of the target repository."""

    def create_pull_request(self, branch: str, title: str, body: str) -> int: ...

    def enable_auto_merge(self, number: int) -> None: ...

    def branch_exists(self, branch: str) -> bool: ...


class GhPullRequests:
    """PullRequests backed by the gh CLI.

    Args:
        repository: Target ``owner/name``.
        timeout: Per-command timeout in seconds, None waits forever.
    """

    def __init__(self, repository: str, timeout: float | None = None) -> None:
        self.repository = repository
        self.timeout = timeout

    def gh(self, *args: str) -> str:
        return output("gh", *args, timeout=self.timeout)

    def create_pull_request(self, branch: str, title: str, body: str) -> int:
        """Open a pull request from ``branch`` into main and return its number."""
        url = self.gh(
            "pr",
            "create",
            "-R",
            self.repository,
            "--head",
            branch,
            "--base",
            BASE_BRANCH,
            "--title",
            title,
            "--body",
            body,
        )
        match = _PR_URL_PATTERN.search(url)
        if match is None:
            raise PackageError(f"unexpected output from gh pr create: {url!r}")
        return int(match.group(1))

    def enable_auto_merge(self, number: int) -> None:
        """Squash-merge the pull request once its checks pass."""
        self.gh("pr", "merge", "-R", self.repository, "--squash", "--auto", str(number))

    def branch_exists(self, branch: str) -> bool:
        try:
            self.gh("api", f"repos/{self.repository}/branches/{quote(branch, safe='')}")
        except CommandError as exc:
            if "Not Found" in exc.stderr or "404" in exc.stderr:
                return False
            raise
        return True
