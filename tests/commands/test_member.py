"""Tests for the ``member`` command group."""

from __future__ import annotations

import json
from typing import Any

import pytest
from click.testing import CliRunner

from shelfctl.cli import cli


def _json(runner: CliRunner, *args: str) -> dict[str, Any]:
    return json.loads(runner.invoke(cli, ["--json", *args]).output)


@pytest.mark.usefixtures("_isolated_library")
class TestMemberCommands:
    def test_add_and_get(self, cli_runner: CliRunner) -> None:
        added = _json(cli_runner, "member", "add", "Ada Lovelace", "--email", "ADA@example.org", "--phone", "555")
        assert added["data"]["id"] == "MEM-0001"
        fetched = _json(cli_runner, "member", "get", "MEM-0001")
        assert fetched["data"]["email"] == "ada@example.org"
        assert fetched["data"]["active_loans"] == 0

    def test_duplicate_email(self, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["member", "add", "Ada", "--email", "ada@example.org", "--phone", "1"])
        result = cli_runner.invoke(cli, ["member", "add", "Ada 2", "--email", "ada@example.org", "--phone", "2"])
        assert result.exit_code == 1
        assert "DUPLICATE_EMAIL" in result.output

    def test_list(self, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["member", "add", "Ada", "--email", "ada@example.org", "--phone", "1"])
        cli_runner.invoke(cli, ["member", "add", "Grace", "--email", "grace@example.org", "--phone", "2"])
        result = cli_runner.invoke(cli, ["member", "list", "--search", "grace"])
        assert result.exit_code == 0
        assert "Grace" in result.output
        assert "ada@example.org" not in result.output

    def test_edit(self, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["member", "add", "Ada", "--email", "ada@example.org", "--phone", "1"])
        data = _json(cli_runner, "member", "edit", "MEM-0001", "--phone", "555-0199")
        assert data["data"]["fields_changed"] == ["phone"]

    def test_edit_nothing(self, cli_runner: CliRunner) -> None:
        assert cli_runner.invoke(cli, ["member", "edit", "MEM-0001"]).exit_code == 2

    def test_remove(self, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["member", "add", "Ada", "--email", "ada@example.org", "--phone", "1"])
        assert cli_runner.invoke(cli, ["member", "remove", "MEM-0001"]).exit_code == 0
        assert cli_runner.invoke(cli, ["member", "get", "MEM-0001"]).exit_code == 1
