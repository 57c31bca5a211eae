"""Configuration loading.

The updater is configured by ``aqua-registry-updater.yaml`` at the root of
the registry checkout and by a few environment variables. Everything is read
and validated once, before any side effect; any problem is a ConfigError.

Example:
    container_registry:
      auth:
        username: octocat
    limit: 30
    ignore_packages:
      - kubernetes/kubectl
    templates:
      pr_title: "chore: update {{.PackageName}} to {{.NewVersion}}"
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from aqua_registry_updater import templates
from aqua_registry_updater.errors import ConfigError, TemplateError

CONFIG_FILE = "aqua-registry-updater.yaml"
DEFAULT_LIMIT = 50
DEFAULT_REGISTRY = "ghcr.io"

REPOSITORY_ENV = "GITHUB_REPOSITORY"
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
REGISTRY_TOKEN_ENV = "AQUA_REGISTRY_UPDATER_CONTAINER_REGISTRY_TOKEN"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ContainerRegistryAuth(_Frozen):
    username: str = Field("", validation_alias=AliasChoices("username", "Username"))


class ContainerRegistry(_Frozen):
    registry: str = Field("", validation_alias=AliasChoices("registry", "Registry"))
    repository: str = Field("", validation_alias=AliasChoices("repository", "Repository"))
    auth: ContainerRegistryAuth | None = Field(None, validation_alias=AliasChoices("auth", "Auth"))

    @property
    def reference(self) -> str:
        """``<registry>/<repository>`` without a tag."""
        return f"{self.registry}/{self.repository}"


class Templates(_Frozen):
    """Pull request templates. Empty values fall back to the defaults."""

    pr_title: str = Field("", validation_alias=AliasChoices("pr_title", "PRTitle"))
    pr_body: str = Field("", validation_alias=AliasChoices("pr_body", "PRBody"))
    transfer_pr_title: str = Field(
        "", validation_alias=AliasChoices("transfer_pr_title", "TransferPRTitle")
    )
    transfer_pr_body: str = Field(
        "", validation_alias=AliasChoices("transfer_pr_body", "TransferPRBody")
    )
    scaffold_pr_title: str = Field(
        "", validation_alias=AliasChoices("scaffold_pr_title", "ScaffoldPRTitle")
    )
    scaffold_pr_body: str = Field(
        "", validation_alias=AliasChoices("scaffold_pr_body", "ScaffoldPRBody")
    )

    def with_defaults(self) -> Templates:
        defaults = {
            "pr_title": templates.DEFAULT_PR_TITLE,
            "pr_body": templates.DEFAULT_PR_BODY,
            "transfer_pr_title": templates.DEFAULT_TRANSFER_PR_TITLE,
            "transfer_pr_body": templates.DEFAULT_TRANSFER_PR_BODY,
            "scaffold_pr_title": templates.DEFAULT_SCAFFOLD_PR_TITLE,
            "scaffold_pr_body": templates.DEFAULT_SCAFFOLD_PR_BODY,
        }
        return self.model_copy(
            update={k: v for k, v in defaults.items() if not getattr(self, k)}
        )

    @cached_property
    def compiled(self) -> dict[str, templates.Template]:
        """Templates by field name, compiled. Raises TemplateError."""
        compiled: dict[str, templates.Template] = {}
        for name in type(self).model_fields:
            try:
                compiled[name] = templates.compile_template(getattr(self, name))
            except TemplateError as exc:
                raise TemplateError(f"compile a template {name}: {exc}") from exc
        return compiled


class Config(_Frozen):
    """Validated updater configuration.

    Attributes:
        limit: Maximum number of packages handled per run.
        container_registry: Where the package list is persisted.
        ignore_packages: Packages that are never handled.
        templates: Pull request templates.
        scaffold: Re-scaffold packages instead of updating their version.
    """

    limit: int = Field(0, validation_alias=AliasChoices("limit", "Limit"))
    container_registry: ContainerRegistry | None = Field(
        None, validation_alias=AliasChoices("container_registry", "ContainerRegistry")
    )
    ignore_packages: frozenset[str] = Field(
        frozenset(), validation_alias=AliasChoices("ignore_packages", "IgnorePackages")
    )
    templates: Templates = Field(
        default_factory=Templates, validation_alias=AliasChoices("templates", "Templates")
    )
    scaffold: bool = Field(False, validation_alias=AliasChoices("scaffold", "Scaffold"))

    def with_defaults(self, repository: str) -> Config:
        """Fill defaults and check required fields.

        Args:
            repository: Target ``owner/name``, the default registry repository.

        Raises:
            ConfigError: If a required field is missing or a template is invalid.
        """
        if self.limit < 0:
            raise ConfigError("limit must not be negative")
        registry = self.container_registry
        if registry is None:
            raise ConfigError("container_registry is required")
        if registry.auth is None:
            raise ConfigError("container_registry.auth is required")
        if not registry.auth.username:
            raise ConfigError("container_registry.auth.username is required")
        registry = registry.model_copy(
            update={
                "registry": registry.registry or DEFAULT_REGISTRY,
                "repository": registry.repository or repository,
            }
        )
        tmpl = self.templates.with_defaults()
        try:
            tmpl.compiled
        except TemplateError as exc:
            raise ConfigError(str(exc)) from exc
        return self.model_copy(
            update={
                "limit": self.limit or DEFAULT_LIMIT,
                "container_registry": registry,
                "templates": tmpl,
            }
        )


def load_config(path: Path, repository: str) -> Config:
    """Read, validate and complete the configuration file.

    Raises:
        ConfigError: If the file can't be read, isn't YAML or is invalid.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"open a configuration file: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"read a configuration file as YAML: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("the configuration file must be a YAML mapping")
    try:
        cfg = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
    return cfg.with_defaults(repository)


@dataclass(frozen=True)
class Environment:
    """Values read from the environment.

    Attributes:
        repo_owner: Owner of the target repository.
        repo_name: Name of the target repository.
        github_token: Token for gh / ghcp (they read it themselves).
        registry_token: Password for the container registry.
    """

    repo_owner: str
    repo_name: str
    github_token: str
    registry_token: str

    @property
    def repository(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"


def load_environment(
    environ: Mapping[str, str] | None = None, *, registry_token_required: bool = True
) -> Environment:
    """Read the target repository and tokens from the environment.

    Raises:
        ConfigError: If GITHUB_REPOSITORY isn't ``owner/name`` or the registry
                     token is missing.
    """
    env = os.environ if environ is None else environ
    owner, sep, name = env.get(REPOSITORY_ENV, "").partition("/")
    if not sep or not owner or not name:
        raise ConfigError(f"{REPOSITORY_ENV} should be <owner>/<name>")
    github_token = env.get(GITHUB_TOKEN_ENV, "")
    registry_token = env.get(REGISTRY_TOKEN_ENV, "")
    if registry_token_required and not registry_token:
        raise ConfigError(f"{REGISTRY_TOKEN_ENV} is required")
    return Environment(
        repo_owner=owner,
        repo_name=name,
        github_token=github_token,
        registry_token=registry_token,
    )
