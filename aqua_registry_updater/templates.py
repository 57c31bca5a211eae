"""Pull request title/body templates.

Templates use the ``{{.Field}}`` placeholder syntax of the configuration file
(see TemplateParams for the available fields). Only plain field substitution
is supported; any other ``{{ ... }}`` action is rejected when the template is
compiled, which happens once at config load.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from aqua_registry_updater.errors import TemplateError
from aqua_registry_updater.models import TemplateParams

_ACTION_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_FIELD_PATTERN = re.compile(r"^\s*\.([A-Za-z_][A-Za-z0-9_]*)\s*$")

FIELDS = frozenset(TemplateParams.model_fields)

_FOOTER = (
    "This pull request was created by "
    "[aqua-registry-updater](https://github.com/aquaproj/aqua-registry-updater)."
)

DEFAULT_PR_TITLE = "chore: update {{.PackageName}} {{.CurrentVersion}} to {{.NewVersion}}"
DEFAULT_PR_BODY = "[{{.NewVersion}}]({{.ReleaseURL}}) [compare]({{.CompareURL}})\n\n" + _FOOTER
DEFAULT_TRANSFER_PR_TITLE = (
    "fix({{.PackageName}}): transfer the repository to {{.NewRepoOwner}}/{{.NewRepoName}}"
)
DEFAULT_TRANSFER_PR_BODY = (
    'The GitHub Repository of the package "{{.PackageName}}" was transferred from '
    "[{{.RepoOwner}}/{{.RepoName}}](https://github.com/{{.RepoOwner}}/{{.RepoName}}) to "
    "[{{.NewRepoOwner}}/{{.NewRepoName}}](https://github.com/{{.NewRepoOwner}}/{{.NewRepoName}})"
    f"\n\n{_FOOTER}"
)
DEFAULT_SCAFFOLD_PR_TITLE = "Re-scaffold {{.PackageName}}"
DEFAULT_SCAFFOLD_PR_BODY = (
    "[registry](https://github.com/aquaproj/aqua-registry/tree/main/pkgs/{{.PackageName}}) | "
    "[repository](https://github.com/{{.RepoOwner}}/{{.RepoName}})\n\n"
    'The command "cmdx s {{.PackageName}}" was run.\n\n'
    f"{_FOOTER}"
)


@dataclass(frozen=True)
class Template:
    """A compiled template: the source and the fields it references."""

    source: str
    fields: frozenset[str]

    def render(self, params: TemplateParams) -> str:
        values = params.model_dump()
        return _ACTION_PATTERN.sub(lambda m: values[_field_name(m.group(1))], self.source)


def compile_template(source: str) -> Template:
    """Check a template and return it compiled.

    Raises:
        TemplateError: If an action is not a known ``.Field`` reference.
    """
    fields: set[str] = set()
    for action in _ACTION_PATTERN.findall(source):
        name = _field_name(action)
        if name not in FIELDS:
            raise TemplateError(f"unknown template field {{{{{action}}}}}")
        fields.add(name)
    if "{{" in _ACTION_PATTERN.sub("", source):
        raise TemplateError("unterminated template action")
    return Template(source=source, fields=frozenset(fields))


def render_template(template: Template, params: TemplateParams) -> str:
    return template.render(params)


def _field_name(action: str) -> str:
    match = _FIELD_PATTERN.match(action)
    return match.group(1) if match else action.strip()
