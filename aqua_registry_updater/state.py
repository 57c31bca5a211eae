"""Persisted package list.

The list of known packages, in rotation order, is stored as ``data.json``
inside an OCI artifact tagged ``latest`` (by default on ghcr.io). It is pulled
once at the start of a run and pushed once at the end.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from aqua_registry_updater.config import ContainerRegistry
from aqua_registry_updater.errors import CommandError, StatePersistError, StateUnavailableError
from aqua_registry_updater.models import StateData
from aqua_registry_updater.shell import output

logger = logging.getLogger(__name__)

DATA_FILE = "data.json"
TAG = "latest"
ARTIFACT_TYPE = "application/vnd.aquaproj.aqua-registry-updater.v1"
MEDIA_TYPE = "application/vnd.aquaproj.aqua-registry-updater.data.v1+json"

# Registry error codes of a missing repository or tag, as relayed by oras.
_NOT_FOUND_MARKERS = ("name unknown", "manifest unknown", "status code 404")


class StateStore(Protocol):
    def pull(self) -> StateData: ...

    def push(self, data: StateData) -> None: ...


def read_data(path: Path) -> StateData:
    """Read a data.json file.

    Raises:
        OSError: If the file can't be read.
        ValueError: If the file is not a valid package list.
    """
    try:
        return StateData.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise ValueError(f"read a data file as JSON: {exc}") from exc


def write_data(path: Path, data: StateData) -> None:
    """Write a data.json file atomically (temp file + rename)."""
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as fh:
            fh.write(data.model_dump_json())
            fh.write("\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class OrasStateStore:
    """StateStore on an OCI registry, through the oras CLI.

    oras uploads the blobs before the manifest and only then moves the tag,
    so an interrupted push leaves ``latest`` on the previous list.

    Args:
        registry: Registry host, repository and username.
        token: Registry password, passed on stdin.
        timeout: Per-command timeout in seconds, None waits forever.
    """

    def __init__(
        self, registry: ContainerRegistry, token: str, timeout: float | None = None
    ) -> None:
        self.registry = registry
        self.token = token
        self.timeout = timeout

    @property
    def reference(self) -> str:
        return f"{self.registry.reference}:{TAG}"

    def _auth_args(self) -> list[str]:
        username = self.registry.auth.username if self.registry.auth else ""
        return ["--username", username, "--password-stdin"]

    def pull(self) -> StateData:
        """Download the package list. A missing tag is an empty list.

        Raises:
            StateUnavailableError: If the registry can't be reached or the
                                   artifact is unreadable.
        """
        logger.info("pulling %s", self.reference)
        with tempfile.TemporaryDirectory() as tmp:
            try:
                output(
                    "oras",
                    "pull",
                    self.reference,
                    "--output",
                    tmp,
                    *self._auth_args(),
                    input=self.token,
                    timeout=self.timeout,
                )
            except CommandError as exc:
                if _is_not_found(exc):
                    logger.info(
                        "%s does not exist yet, starting from an empty list", self.reference
                    )
                    return StateData()
                raise StateUnavailableError(
                    f"pull data from the container registry: {exc}"
                ) from exc
            try:
                return read_data(Path(tmp) / DATA_FILE)
            except (OSError, ValueError) as exc:
                raise StateUnavailableError(f"read {DATA_FILE}: {exc}") from exc

    def push(self, data: StateData) -> None:
        """Upload the package list and move the tag to it.

        Raises:
            StatePersistError: If the list can't be written or uploaded.
        """
        logger.info("pushing %s (%d packages)", self.reference, len(data.packages))
        with tempfile.TemporaryDirectory() as tmp:
            try:
                write_data(Path(tmp) / DATA_FILE, data)
                output(
                    "oras",
                    "push",
                    self.reference,
                    "--artifact-type",
                    ARTIFACT_TYPE,
                    f"{DATA_FILE}:{MEDIA_TYPE}",
                    *self._auth_args(),
                    input=self.token,
                    cwd=Path(tmp),
                    timeout=self.timeout,
                )
            except (OSError, CommandError) as exc:
                raise StatePersistError(
                    f"push data.json to the container registry: {exc}"
                ) from exc


def _is_not_found(exc: CommandError) -> bool:
    """Whether oras ran and the registry reported the artifact missing.

    A missing binary (127) or a timeout (-1) never means the tag is absent.
    """
    if exc.returncode <= 0 or exc.returncode == 127:
        return False
    stderr = exc.stderr.lower()
    return any(marker in stderr for marker in _NOT_FOUND_MARKERS)
