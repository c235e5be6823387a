"""Tests for the format_result dispatcher and OutputSettings."""

import json

from covrest.output.formatters import OutputSettings, format_result
from covrest.services.result import ServiceResult


class TestOutputSettings:
    def test_defaults(self) -> None:
        s = OutputSettings()
        assert s.json_output is False
        assert s.verbose is False


class TestFormatResult:
    def test_json_mode_returns_valid_json(self) -> None:
        result = ServiceResult(ok=True, op="subset", data={"kind": "coverage", "axes": {"t": 1}})
        data = json.loads(format_result(result, settings=OutputSettings(json_output=True)))
        assert data["ok"] is True
        assert data["data"]["axes"] == {"t": 1}

    def test_json_mode_error(self) -> None:
        result = ServiceResult.failure("query", "QueryError", "Bad")
        data = json.loads(format_result(result, settings=OutputSettings(json_output=True)))
        assert data["ok"] is False
        assert data["error"]["message"] == "Bad"

    def test_human_mode_by_default(self) -> None:
        result = ServiceResult(ok=True, op="subset", data={"kind": "coverage"})
        output = format_result(result)
        assert output.startswith("OK")
        assert "kind: coverage" in output
