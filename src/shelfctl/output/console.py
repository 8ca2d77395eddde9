"""Rich Console factory and theme for shelfctl output.

Consoles render into a StringIO buffer so renderers keep the
``format_result() -> str`` contract. Rich turns color off by itself when
there is no terminal (tests, pipes).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

SHELF_THEME = Theme(
    {
        "shelf.ok": "bold green",
        "shelf.error": "bold red",
        "shelf.warning": "bold yellow",
        "shelf.op": "bold cyan",
        "shelf.key": "dim",
        "shelf.id": "bold blue",
        "shelf.title": "bold",
        "shelf.status.active": "yellow",
        "shelf.status.returned": "green",
        "shelf.count.low": "red",
        "shelf.count.ok": "green",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "active": "shelf.status.active",
    "returned": "shelf.status.returned",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=SHELF_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Rich style name for a loan status."""
    return _STATUS_STYLES.get(status, "")


def style_for_available(available: int) -> str:
    return "shelf.count.low" if available <= 0 else "shelf.count.ok"
