"""Tests for aqua_registry_updater.models."""

from __future__ import annotations

from aqua_registry_updater.models import BatchResult, Outcome, StateData


class TestStateData:
    def test_parse_data_json(self) -> None:
        state = StateData.model_validate_json(
            '{"packages": [{"name": "cli/cli"}, {"name": "golang.org/x/tools"}]}'
        )
        assert state.names() == ["cli/cli", "golang.org/x/tools"]

    def test_empty_document(self) -> None:
        assert StateData.model_validate_json("{}").packages == []

    def test_serializes_only_names(self) -> None:
        state = StateData.model_validate({"packages": [{"name": "a/b"}]})
        assert state.model_dump() == {"packages": [{"name": "a/b"}]}


class TestBatchResult:
    def test_defaults(self) -> None:
        result = BatchResult()
        assert result.stop_index == 0
        assert result.processed == 0
        assert result.cancelled is False
        assert result.outcomes == {}

    def test_outcomes_keep_visiting_order(self) -> None:
        result = BatchResult()
        result.outcomes["b"] = Outcome.UPDATED
        result.outcomes["a"] = Outcome.IGNORED
        assert list(result.outcomes) == ["b", "a"]
        assert result.model_dump(mode="json")["outcomes"] == {"b": "updated", "a": "ignored"}
