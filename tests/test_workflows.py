"""End-to-end circulation through the CLI: catalog, issue, return, audit."""

from __future__ import annotations

import json
from typing import Any

import pytest
from click.testing import CliRunner

from shelfctl.cli import cli


def _ok(runner: CliRunner, *args: str) -> dict[str, Any]:
    result = runner.invoke(cli, ["--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)["data"]


def _err(runner: CliRunner, *args: str) -> str:
    result = runner.invoke(cli, ["--json", *args])
    assert result.exit_code == 1, result.output
    return json.loads(result.output)["error"]["code"]


@pytest.mark.usefixtures("_isolated_library")
class TestCirculationDay:
    def test_two_copies_two_members(self, cli_runner: CliRunner) -> None:
        r = cli_runner
        book = _ok(r, "book", "add", "Dune", "--author", "Frank Herbert", "--isbn", "9780441013593",
                   "--category", "Fiction", "--copies", "2")["id"]
        m1 = _ok(r, "member", "add", "Ada Lovelace", "--email", "ada@example.org", "--phone", "555-0100")["id"]
        m2 = _ok(r, "member", "add", "Grace Hopper", "--email", "grace@example.org", "--phone", "555-0101")["id"]

        l1 = _ok(r, "issue", book, m1)
        assert l1["available_copies"] == 1
        assert _err(r, "issue", book, m1) == "DUPLICATE_LOAN"
        assert _ok(r, "issue", book, m2)["available_copies"] == 0

        assert _ok(r, "return", l1["id"])["available_copies"] == 1
        assert _ok(r, "loan", "get", l1["id"])["status"] == "returned"
        assert _err(r, "return", l1["id"]) == "ALREADY_RETURNED"
        assert _ok(r, "issue", book, m1)["available_copies"] == 0

        assert _err(r, "member", "remove", m1) == "ACTIVE_LOANS"
        assert _err(r, "book", "withdraw", book) == "ACTIVE_LOANS"
        assert _ok(r, "check")["errors"] == 0

        stats = _ok(r, "loan", "stats")
        assert (stats["active"], stats["returned"]) == (2, 1)

    def test_unknown_ids(self, cli_runner: CliRunner) -> None:
        assert _err(cli_runner, "issue", "BK-0001", "MEM-0001") == "NOT_FOUND"
        assert _err(cli_runner, "return", "LOAN-0001") == "NOT_FOUND"
