"""Tests for aqua_registry_updater.state."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import state_of

from aqua_registry_updater.config import ContainerRegistry, ContainerRegistryAuth
from aqua_registry_updater.errors import CommandError, StatePersistError, StateUnavailableError
from aqua_registry_updater.models import StateData
from aqua_registry_updater.state import DATA_FILE, OrasStateStore, read_data, write_data


@pytest.fixture
def store() -> OrasStateStore:
    registry = ContainerRegistry(
        registry="ghcr.io",
        repository="aquaproj/aqua-registry",
        auth=ContainerRegistryAuth(username="octocat"),
    )
    return OrasStateStore(registry, "secret")


class TestDataFile:
    def test_write_then_read(self, tmp_path: Path) -> None:
        path = tmp_path / DATA_FILE
        write_data(path, state_of("a/b", "c/d"))
        assert read_data(path).names() == ["a/b", "c/d"]
        assert json.loads(path.read_text()) == {"packages": [{"name": "a/b"}, {"name": "c/d"}]}

    def test_write_leaves_no_temp_files(self, tmp_path: Path) -> None:
        write_data(tmp_path / DATA_FILE, state_of("a/b"))
        assert [p.name for p in tmp_path.iterdir()] == [DATA_FILE]

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / DATA_FILE
        path.write_text('{"packages": [{"nom": "a/b"}]}')
        with pytest.raises(ValueError):
            read_data(path)


class TestOrasPull:
    def test_reference(self, store: OrasStateStore) -> None:
        assert store.reference == "ghcr.io/aquaproj/aqua-registry:latest"

    def test_reads_pulled_data(self, store: OrasStateStore) -> None:
        def fake_output(*args: str, **kwargs: object) -> str:
            out_dir = Path(args[args.index("--output") + 1])
            (out_dir / DATA_FILE).write_text('{"packages": [{"name": "cli/cli"}]}')
            return ""

        with patch("aqua_registry_updater.state.output", side_effect=fake_output) as mock_output:
            state = store.pull()

        assert state.names() == ["cli/cli"]
        args = mock_output.call_args.args
        assert args[:3] == ("oras", "pull", "ghcr.io/aquaproj/aqua-registry:latest")
        assert "--password-stdin" in args
        assert args[args.index("--username") + 1] == "octocat"
        # The token goes through stdin, never the command line
        assert "secret" not in args
        assert mock_output.call_args.kwargs["input"] == "secret"

    @pytest.mark.parametrize(
        "stderr",
        [
            "Error: response status code 404: Not Found",
            "Error: response status code 404: name unknown: repository name not known",
            "MANIFEST_UNKNOWN: manifest unknown",
        ],
    )
    def test_missing_artifact_is_empty(self, store: OrasStateStore, stderr: str) -> None:
        error = CommandError(("oras", "pull"), 1, stderr)
        with patch("aqua_registry_updater.state.output", side_effect=error):
            assert store.pull() == StateData()

    def test_registry_failure(self, store: OrasStateStore) -> None:
        error = CommandError(("oras", "pull"), 1, "unauthorized: authentication required")
        with patch("aqua_registry_updater.state.output", side_effect=error):
            with pytest.raises(StateUnavailableError, match="unauthorized"):
                store.pull()

    @pytest.mark.parametrize(
        "error",
        [
            CommandError(("oras", "pull"), 127, "command not found: oras"),
            CommandError(("oras", "pull"), -1, "timed out after 30s"),
            CommandError(("oras", "pull"), 1, "Error: credentials not found for ghcr.io"),
        ],
    )
    def test_failures_mentioning_not_found(
        self, store: OrasStateStore, error: CommandError
    ) -> None:
        with patch("aqua_registry_updater.state.output", side_effect=error):
            with pytest.raises(StateUnavailableError):
                store.pull()

    def test_missing_oras_binary(self, store: OrasStateStore) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(StateUnavailableError, match="command not found"):
                store.pull()

    def test_artifact_without_data_file(self, store: OrasStateStore) -> None:
        with patch("aqua_registry_updater.state.output", return_value=""):
            with pytest.raises(StateUnavailableError, match=DATA_FILE):
                store.pull()

    def test_corrupt_data_file(self, store: OrasStateStore) -> None:
        def fake_output(*args: str, **kwargs: object) -> str:
            out_dir = Path(args[args.index("--output") + 1])
            (out_dir / DATA_FILE).write_text("not json")
            return ""

        with patch("aqua_registry_updater.state.output", side_effect=fake_output):
            with pytest.raises(StateUnavailableError):
                store.pull()


class TestOrasPush:
    def test_pushes_data_file(self, store: OrasStateStore) -> None:
        pushed: dict = {}

        def fake_output(*args: str, **kwargs: object) -> str:
            cwd = Path(kwargs["cwd"])  # type: ignore[arg-type]
            pushed["data"] = json.loads((cwd / DATA_FILE).read_text())
            pushed["args"] = args
            return ""

        with patch("aqua_registry_updater.state.output", side_effect=fake_output):
            store.push(state_of("b", "a"))

        assert pushed["data"] == {"packages": [{"name": "b"}, {"name": "a"}]}
        assert pushed["args"][:3] == ("oras", "push", "ghcr.io/aquaproj/aqua-registry:latest")
        assert any(a.startswith(f"{DATA_FILE}:") for a in pushed["args"])

    def test_push_failure(self, store: OrasStateStore) -> None:
        error = CommandError(("oras", "push"), 1, "denied")
        with patch("aqua_registry_updater.state.output", side_effect=error):
            with pytest.raises(StatePersistError, match="denied"):
                store.push(StateData())
