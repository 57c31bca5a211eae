"""Detection of transferred GitHub repositories.

When a repository is transferred or renamed, github.com answers requests for
the old ``owner/repo`` with a permanent redirect to the new location. The
package then has to be renamed in the registry rather than updated.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import httpx
import yaml

from aqua_registry_updater.errors import RedirectCheckError
from aqua_registry_updater.models import RedirectInfo
from aqua_registry_updater.pkgfile import REGISTRY_FILE, package_dir

logger = logging.getLogger(__name__)

GITHUB_URL = "https://github.com"

_REDIRECT_STATUSES = frozenset({301, 302, 307, 308})
_LOCATION_PATTERN = re.compile(r"^https://github\.com/([^/?#]+)/([^/?#]+)")


class RedirectDetector:
    """Check github.com for repository transfers.

    Args:
        root: Root of the registry checkout.
        client: HTTP client; must not follow redirects. A default client is
                created (and owned) if None.
        timeout: Request timeout in seconds for the default client.
    """

    def __init__(
        self,
        root: Path,
        client: httpx.Client | None = None,
        timeout: float | None = None,
    ) -> None:
        self.root = root
        self._owns_client = client is None
        self.client = client or httpx.Client(follow_redirects=False, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> RedirectDetector:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def repository_of(self, package_name: str) -> tuple[str, str] | None:
        """Return the GitHub ``(owner, repo)`` of a package, or None.

        Uses repo_owner / repo_name from the package's registry.yaml when it
        defines exactly one package, otherwise the first two segments of the
        name. Owners containing a dot (``golang.org/x/...``) are not GitHub.
        """
        owner, repo = _registry_repository(package_dir(self.root, package_name) / REGISTRY_FILE)
        if not owner or not repo:
            segments = package_name.split("/")
            if len(segments) < 2:
                return None
            owner, repo = segments[0], segments[1]
        if "." in owner:
            return None
        return owner, repo

    def check_redirect(self, package_name: str) -> RedirectInfo | None:
        """Return the transfer of the package's repository, or None.

        Raises:
            RedirectCheckError: If github.com can't be reached.
        """
        repository = self.repository_of(package_name)
        if repository is None:
            return None
        owner, repo = repository
        try:
            resp = self.client.head(f"{GITHUB_URL}/{owner}/{repo}")
        except httpx.HTTPError as exc:
            raise RedirectCheckError(
                f"check if the repository {owner}/{repo} was transferred: {exc}"
            ) from exc
        if resp.status_code not in _REDIRECT_STATUSES:
            return None

        match = _LOCATION_PATTERN.match(resp.headers.get("location", ""))
        if match is None:
            return None
        new_owner, new_repo = match.group(1), match.group(2)
        if (new_owner.lower(), new_repo.lower()) == (owner.lower(), repo.lower()):
            return None

        new_package_name = _renamed(package_name, owner, repo, new_owner, new_repo)
        if new_package_name is None:
            logger.warning(
                "%s/%s moved to %s/%s but %s is not named after it",
                owner,
                repo,
                new_owner,
                new_repo,
                package_name,
            )
            return None
        return RedirectInfo(
            repo_owner=owner,
            repo_name=repo,
            new_repo_owner=new_owner,
            new_repo_name=new_repo,
            new_package_name=new_package_name,
        )


def _registry_repository(path: Path) -> tuple[str, str]:
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return "", ""
    pkgs = doc.get("packages") if isinstance(doc, dict) else None
    if not isinstance(pkgs, list) or len(pkgs) != 1 or not isinstance(pkgs[0], dict):
        return "", ""
    return str(pkgs[0].get("repo_owner") or ""), str(pkgs[0].get("repo_name") or "")


def _renamed(package_name: str, owner: str, repo: str, new_owner: str, new_repo: str) -> str | None:
    """Swap the leading ``owner/repo`` of a package name.

    Example:
        _renamed("old/tool/cli", "old", "tool", "new", "tool") → "new/tool/cli"
    """
    segments = package_name.split("/")
    if len(segments) < 2 or segments[0].lower() != owner.lower() or segments[1].lower() != repo.lower():
        return None
    return "/".join([new_owner, new_repo, *segments[2:]])
