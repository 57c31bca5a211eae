"""Tests for aqua_registry_updater.redirect."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from aqua_registry_updater.errors import RedirectCheckError
from aqua_registry_updater.redirect import RedirectDetector


def detector(
    root: Path, handler: Callable[[httpx.Request], httpx.Response]
) -> RedirectDetector:
    client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=False)
    return RedirectDetector(root, client=client)


def moved_to(location: str, status: int = 301) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, headers={"Location": location})

    return handler


def ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200)


class TestCheckRedirect:
    def test_no_redirect(self, tmp_path: Path) -> None:
        assert detector(tmp_path, ok).check_redirect("cli/cli") is None

    def test_transferred_repository(self, tmp_path: Path) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(301, headers={"Location": "https://github.com/new-owner/tool"})

        info = detector(tmp_path, handler).check_redirect("old-owner/tool")

        assert info is not None
        assert info.repo_owner == "old-owner"
        assert info.repo_name == "tool"
        assert info.new_repo_owner == "new-owner"
        assert info.new_repo_name == "tool"
        assert info.new_package_name == "new-owner/tool"
        assert requests[0].method == "HEAD"
        assert str(requests[0].url) == "https://github.com/old-owner/tool"

    def test_subpackage_keeps_its_suffix(self, tmp_path: Path) -> None:
        handler = moved_to("https://github.com/new/repo")
        info = detector(tmp_path, handler).check_redirect("old/repo/cli")
        assert info is not None
        assert info.new_package_name == "new/repo/cli"

    def test_case_only_change_is_not_a_transfer(self, tmp_path: Path) -> None:
        handler = moved_to("https://github.com/CLI/CLI")
        assert detector(tmp_path, handler).check_redirect("cli/cli") is None

    def test_redirect_outside_github(self, tmp_path: Path) -> None:
        handler = moved_to("https://example.com/login")
        assert detector(tmp_path, handler).check_redirect("cli/cli") is None

    @pytest.mark.parametrize("status", [302, 307, 308])
    def test_other_redirect_statuses(self, tmp_path: Path, status: int) -> None:
        handler = moved_to("https://github.com/b/repo", status)
        info = detector(tmp_path, handler).check_redirect("a/repo")
        assert info is not None
        assert info.new_package_name == "b/repo"

    def test_not_found(self, tmp_path: Path) -> None:
        handler: Callable[[httpx.Request], httpx.Response] = lambda r: httpx.Response(404)
        assert detector(tmp_path, handler).check_redirect("gone/repo") is None

    def test_dotted_owner_is_not_requested(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("unexpected request")

        assert detector(tmp_path, handler).check_redirect("golang.org/x/tools") is None

    def test_single_segment_name(self, tmp_path: Path) -> None:
        assert detector(tmp_path, ok).check_redirect("tool") is None

    def test_network_error(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RedirectCheckError, match="a/b"):
            detector(tmp_path, handler).check_redirect("a/b")


class TestRepositoryOf:
    def test_uses_registry_yaml(self, tmp_path: Path) -> None:
        pkg_dir = tmp_path / "pkgs" / "kubernetes" / "kubectl"
        pkg_dir.mkdir(parents=True)
        (pkg_dir / "registry.yaml").write_text(
            "packages:\n  - type: github_release\n    repo_owner: kubernetes\n    repo_name: kubernetes\n"
        )
        assert detector(tmp_path, ok).repository_of("kubernetes/kubectl") == (
            "kubernetes",
            "kubernetes",
        )

    def test_falls_back_to_name(self, tmp_path: Path) -> None:
        assert detector(tmp_path, ok).repository_of("cli/cli/extra") == ("cli", "cli")

    def test_multiple_packages_fall_back_to_name(self, tmp_path: Path) -> None:
        pkg_dir = tmp_path / "pkgs" / "a" / "b"
        pkg_dir.mkdir(parents=True)
        (pkg_dir / "registry.yaml").write_text(
            "packages:\n  - repo_owner: x\n    repo_name: y\n  - repo_owner: z\n    repo_name: w\n"
        )
        assert detector(tmp_path, ok).repository_of("a/b") == ("a", "b")

    def test_undecodable_registry_yaml_falls_back_to_name(self, tmp_path: Path) -> None:
        pkg_dir = tmp_path / "pkgs" / "a" / "b"
        pkg_dir.mkdir(parents=True)
        (pkg_dir / "registry.yaml").write_bytes(b"\xff\xfepackages:\n")
        assert detector(tmp_path, ok).repository_of("a/b") == ("a", "b")

    def test_mapping_packages_fall_back_to_name(self, tmp_path: Path) -> None:
        pkg_dir = tmp_path / "pkgs" / "a" / "b"
        pkg_dir.mkdir(parents=True)
        (pkg_dir / "registry.yaml").write_text("packages:\n  repo_owner: x\n  repo_name: y\n")
        assert detector(tmp_path, ok).repository_of("a/b") == ("a", "b")


class TestClientOwnership:
    def test_closes_own_client(self, tmp_path: Path) -> None:
        with RedirectDetector(tmp_path) as redirects:
            client = redirects.client
        assert client.is_closed

    def test_leaves_given_client_open(self, tmp_path: Path) -> None:
        client = httpx.Client(transport=httpx.MockTransport(ok))
        with RedirectDetector(tmp_path, client=client):
            pass
        assert not client.is_closed
        client.close()
