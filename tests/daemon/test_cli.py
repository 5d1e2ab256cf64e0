"""
Tests for the relay CLI.
"""

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from conftest import write_project_session

from relayd.cli import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.mark.unit
class TestCli:
    """Test turns and activity commands."""

    def test_turns_from_file(
        self,
        runner: CliRunner,
        mock_storage_env: Path,
        write_session,
        sample_records: list[dict[str, Any]],
    ) -> None:
        """Test turns prints each turn with its user input."""
        path = write_session(sample_records)

        result = runner.invoke(cli, ["turns", "--file", str(path)])

        assert result.exit_code == 0
        assert "Turn 1 (5 records)" in result.output
        assert "> Read the config" in result.output
        assert "The config sets host and port." in result.output
        assert "Turn 2" in result.output

    def test_turns_as_json(
        self,
        runner: CliRunner,
        mock_storage_env: Path,
        write_session,
        sample_records: list[dict[str, Any]],
    ) -> None:
        """Test --json emits turns with camelCase keys."""
        path = write_session(sample_records)

        result = runner.invoke(cli, ["turns", "--file", str(path), "--json"])

        assert result.exit_code == 0
        turns = json.loads(result.output)
        assert [turn["allMessageUuids"][0] for turn in turns] == ["u1", "u3"]

    def test_turns_by_session_id(
        self,
        runner: CliRunner,
        mock_storage_env: Path,
        sample_records: list[dict[str, Any]],
    ) -> None:
        """Test a session id and working directory locate the log under the projects directory."""
        write_project_session(mock_storage_env, "/home/dev/app", "sess-1", sample_records)

        result = runner.invoke(cli, ["turns", "sess-1", "--working-dir", "/home/dev/app"])

        assert result.exit_code == 0
        assert "Turn 2" in result.output

    def test_activity(
        self,
        runner: CliRunner,
        mock_storage_env: Path,
        write_session,
        sample_records: list[dict[str, Any]],
    ) -> None:
        """Test activity renders the rebuilt activity log."""
        path = write_session(sample_records)

        result = runner.invoke(cli, ["activity", "--file", str(path)])

        assert result.exit_code == 0
        assert result.output.strip()

    def test_missing_session(self, runner: CliRunner, mock_storage_env: Path) -> None:
        """Test a missing log exits with an error."""
        result = runner.invoke(cli, ["turns", "--file", str(mock_storage_env / "nope.jsonl")])

        assert result.exit_code != 0

    def test_session_required(self, runner: CliRunner, mock_storage_env: Path) -> None:
        """Test turns without an id or file is a usage error."""
        result = runner.invoke(cli, ["turns"])

        assert result.exit_code == 2
