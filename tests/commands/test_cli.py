"""Tests for the covrest CLI against a mocked coverage API."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from covrest import __version__
from covrest.cli import cli
from covrest.commands._params import parse_index_spec, parse_value_spec
from covrest.services import client
from tests.conftest import API_ROOT, MockApi


@pytest.fixture(autouse=True)
def _mocked_http(mock_api: MockApi, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    original = client.http_loader
    monkeypatch.setattr(
        client,
        "http_loader",
        lambda settings=None, **kw: original(settings, transport=mock_api.transport()),
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COVREST_CONFIG", raising=False)


class TestSpecParsing:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("10", 10.0),
            ("2020-01-01T00:00:00Z", "2020-01-01T00:00:00Z"),
            ("-10/10", {"start": -10.0, "stop": 10.0}),
            ("~12.5", {"target": 12.5}),
        ],
    )
    def test_value_spec(self, text: str, expected: object) -> None:
        assert parse_value_spec(text) == expected

    def test_index_spec(self) -> None:
        assert parse_index_spec("3") == 3
        assert parse_index_spec("0:10") == {"start": 0, "stop": 10}
        assert parse_index_spec("0:10:2") == {"start": 0, "stop": 10, "step": 2}

    def test_index_spec_rejects_extra_parts(self) -> None:
        with pytest.raises(ValueError, match="start:stop"):
            parse_index_spec("0:1:2:3")


class TestRootGroup:
    def test_help_without_command(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "capabilities" in result.output
        assert "subset" in result.output

    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])
        assert __version__ in result.output

    @pytest.mark.parametrize(
        ("args", "keyword"),
        [
            (["capabilities", "--examples"], "covrest capabilities"),
            (["subset", "--examples"], "--index x=0:10:2"),
            (["query", "--examples"], "--embed domain"),
        ],
    )
    def test_examples(self, cli_runner: CliRunner, args: list[str], keyword: str) -> None:
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 0
        assert keyword in result.output

    def test_subset_help_lists_both_syntaxes(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["subset", "--help"])
        assert result.exit_code == 0
        assert "Constraint syntax" in result.output
        assert "AXIS=~target" in result.output
        assert "AXIS=start:stop[:step]" in result.output

    def test_query_help_lists_value_syntax_only(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", "--help"])
        assert "AXIS=start/stop" in result.output
        assert "AXIS=start:stop[:step]" not in result.output

    def test_capabilities_help_has_no_syntax_section(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["capabilities", "--help"])
        assert "Constraint syntax" not in result.output


class TestCapabilitiesCommand:
    def test_human_output(self, cli_runner: CliRunner, mock_api: MockApi) -> None:
        result = cli_runner.invoke(cli, ["capabilities", API_ROOT])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("OK")
        assert "time" in result.output
        assert mock_api.requests[0].headers["user-agent"] == "covrest"

    def test_json_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "capabilities", API_ROOT + "/1"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["data"]["subset"]["time"] == ["range"]

    def test_http_failure_exits_nonzero(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["capabilities", API_ROOT + "/missing"])
        assert result.exit_code == 1
        assert "ERROR" in result.output


class TestSubsetCommand:
    def test_value_subset(self, cli_runner: CliRunner, mock_api: MockApi) -> None:
        result = cli_runner.invoke(
            cli,
            ["--json", "subset", API_ROOT + "/1", "--value", "t=2020-01-01T12:00:00Z/2020-01-02T12:00:00Z"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["axes"]["t"] == 1
        assert "subsetTimeStart" in mock_api.urls[-1]

    def test_index_subset(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "subset", "http://api.example.org/plain", "--index", "t=0:2"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["data"]["axes"]["t"] == 2

    def test_unknown_axis(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["subset", API_ROOT + "/1", "--value", "q=1"])
        assert result.exit_code == 1
        assert "Unknown axis 'q'" in result.output

    def test_malformed_spec(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["subset", API_ROOT + "/1", "--value", "t"])
        assert result.exit_code == 2
        assert "AXIS=SPEC" in result.output


class TestQueryCommand:
    def test_filter(self, cli_runner: CliRunner, mock_api: MockApi) -> None:
        result = cli_runner.invoke(
            cli,
            ["--json", "query", API_ROOT, "--filter", "t=2020-01-01T00:00:00Z/2020-01-01T06:00:00Z"],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["data"]["coverages"] == 1
        assert "timeStart" in mock_api.urls[-1]

    def test_local_subset(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", API_ROOT, "--subset", "t=2020-01-02T00:00:00Z"])
        assert result.exit_code == 0, result.output
        assert "coverages: 2" in result.output
        assert "remote_capable: no" in result.output

    def test_rejects_coverage(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", API_ROOT + "/1"])
        assert result.exit_code == 1
        assert "not a coverage collection" in result.output
