"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from shelfctl.output.console import create_console, get_output, style_for_available, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from shelfctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode: IDs only."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    items = result.data.get("items")
    if isinstance(items, list):
        return "\n".join(str(item["id"]) for item in items if isinstance(item, dict) and "id" in item)
    if "id" in result.data:
        return str(result.data["id"])
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="shelf.ok")
    op = Text(f"  {result.op}", style="shelf.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="shelf.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="shelf.id")
    elif key in ("title", "book_title"):
        v = Text(str(value), style="shelf.title")
    elif key == "status":
        v = Text(str(value), style=style_for_status(str(value)))
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block (telemetry span) in verbose mode."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry" and isinstance(v, dict):
            duration = v.get("duration_ms", 0.0)
            style = "yellow" if duration > 100 else "dim"
            console.print(f"    [{style}]{duration:>8.2f}ms[/{style}]  {v.get('name', '?')}")
        else:
            console.print(f"    {k}: {v}")


def _footer(console: Console, result: ServiceResult, noun: str) -> None:
    d = result.data
    count = d.get("count", 0)
    total = d.get("total", count)
    offset = d.get("offset", 0)
    if count and total > count:
        console.print(f"\n{offset + 1}-{offset + count} of {total} {noun}")
    else:
        console.print(f"\n{total} {noun}")


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(Text("ERROR", style="shelf.error"), Text(f"  {result.op}{code}  ", style="shelf.op"), Text(msg))
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")
    if result.data.get("issues"):
        _render_check(result, console, verbose=verbose)


# ── Mutation renderers ────────────────────────────────────────────────


def _render_mutation(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render add/update/remove results."""
    _status_line(console, result)
    keys = (
        "id",
        "title",
        "name",
        "email",
        "total_copies",
        "available_copies",
        "active_loans",
        "purged_loans",
        "fields_changed",
    )
    for key in keys:
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


def _render_loan(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render issue/return/get_loan results."""
    _status_line(console, result)
    keys = (
        "id",
        "book_id",
        "book_title",
        "member_id",
        "member_name",
        "status",
        "issued_at",
        "returned_at",
        "issued_by",
        "available_copies",
    )
    for key in keys:
        if result.data.get(key) is not None:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


# ── Table renderers ───────────────────────────────────────────────────


def _render_book_table(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("ID", style="shelf.id", no_wrap=True)
    table.add_column("Title", style="shelf.title")
    table.add_column("Author")
    table.add_column("Category")
    table.add_column("Available", justify="right")
    if verbose:
        table.add_column("ISBN", style="dim")
    for item in items:
        available = int(item.get("available_copies", 0))
        row = [
            str(item.get("id", "")),
            str(item.get("title", "")),
            str(item.get("author", "")),
            str(item.get("category", "")),
            Text(f"{available}/{item.get('total_copies', 0)}", style=style_for_available(available)),
        ]
        if verbose:
            row.append(str(item.get("isbn", "")))
        table.add_row(*row)
    console.print(table)
    _footer(console, result, "books")


def _render_member_table(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("ID", style="shelf.id", no_wrap=True)
    table.add_column("Name", style="shelf.title")
    table.add_column("Email")
    table.add_column("Phone")
    if verbose:
        table.add_column("Joined", style="dim")
    for item in items:
        row = [
            str(item.get("id", "")),
            str(item.get("name", "")),
            str(item.get("email", "")),
            str(item.get("phone", "")),
        ]
        if verbose:
            row.append(str(item.get("joined", "")))
        table.add_row(*row)
    console.print(table)
    _footer(console, result, "members")


def _loan_table(items: list[dict[str, Any]]) -> Table:
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("ID", style="shelf.id", no_wrap=True)
    table.add_column("Book")
    table.add_column("Member")
    table.add_column("Status")
    table.add_column("Issued", style="dim")
    table.add_column("Returned", style="dim")
    for item in items:
        status = str(item.get("status", ""))
        table.add_row(
            str(item.get("id", "")),
            str(item.get("book_title") or item.get("book_id", "")),
            str(item.get("member_name") or item.get("member_id", "")),
            Text(status, style=style_for_status(status)),
            str(item.get("issued_at", ""))[:19],
            str(item.get("returned_at") or "")[:19],
        )
    return table


def _render_loan_table(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    console.print(_loan_table(result.data.get("items", [])))
    _footer(console, result, "loans")


def _render_loan_stats(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "active", result.data.get("active", 0))
    _field(console, "returned", result.data.get("returned", 0))
    recent = result.data.get("recent", [])
    if recent:
        console.print()
        console.print(Text("  recent active loans", style="dim"))
        console.print(_loan_table(recent))


# ── Check / events / upgrade renderers ────────────────────────────────


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    issues = result.data.get("issues", [])
    if not issues:
        console.print("[shelf.ok]OK[/shelf.ok]  No issues found.")
        return

    severity_styles = {"error": "shelf.error", "warning": "shelf.warning"}
    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        by_category.setdefault(str(issue.get("category", "unknown")), []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print(f"\n[bold]{cat}[/bold]")
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            style = severity_styles.get(sev, "")
            prefix = f"[{style}]{sev}[/{style}]" if style else sev
            console.print(f"  {prefix}: {issue.get('message', '')}")

    errors = sum(1 for i in issues if i.get("severity") == "error")
    console.print(f"\n{errors} errors, {len(issues) - errors} warnings")


def _render_events(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    events = result.data.get("events", [])
    if not events:
        console.print("[shelf.ok]OK[/shelf.ok]  No undelivered notifications.")
        return
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Event", justify="right")
    table.add_column("Hook")
    table.add_column("Status")
    if verbose or result.op == "events_list":
        table.add_column("Retries", justify="right")
        table.add_column("Error", style="dim")
    for ev in events:
        row = [str(ev.get("id", "")), str(ev.get("hook_name", "")), str(ev.get("status", ""))]
        if verbose or result.op == "events_list":
            row += [str(ev.get("retries", "")), str(ev.get("error") or "")]
        table.add_row(*row)
    console.print(table)


def _render_upgrade(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    for key in ("applied_count", "pending_count", "current", "head", "backup_path", "message"):
        if key in d:
            _field(console, key, d[key])
    if verbose and d.get("pending"):
        console.print()
        for p in d["pending"]:
            console.print(f"  {p['revision']}: {p['description']}")


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    # Catalog
    "add_book": _render_mutation,
    "update_book": _render_mutation,
    "set_total_copies": _render_mutation,
    "withdraw_book": _render_mutation,
    "get_book": _render_generic,
    "list_books": _render_book_table,
    # Members
    "register_member": _render_mutation,
    "update_member": _render_mutation,
    "remove_member": _render_mutation,
    "get_member": _render_generic,
    "list_members": _render_member_table,
    # Circulation
    "issue": _render_loan,
    "return": _render_loan,
    "get_loan": _render_loan,
    "list_loans": _render_loan_table,
    "loan_stats": _render_loan_stats,
    "purge_loan": _render_mutation,
    # Maintenance
    "check": _render_check,
    "events_list": _render_events,
    "events_drain": _render_events,
    "upgrade": _render_upgrade,
}
