"""Shared pytest fixtures and test helpers for shelfctl tests."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from shelfctl.config.settings import ShelfSettings
from shelfctl.infrastructure.database.engine import init_database
from shelfctl.infrastructure.store import LibraryStore
from shelfctl.services.telemetry import disable_telemetry


@pytest.fixture(autouse=True)
def _restore_global_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Undo what the CLI configures process-wide (log handlers, telemetry)."""
    monkeypatch.delenv("SHELFCTL_CONFIG", raising=False)
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    shelf_level = logging.getLogger("shelfctl").level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("shelfctl").setLevel(shelf_level)
    disable_telemetry()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    """Temporary library directory. ``.shelfctl/`` is created on first open."""
    return tmp_path


@pytest.fixture
def store(library_root: Path) -> Generator[LibraryStore]:
    """Initialized LibraryStore with no event bus (notifications off)."""
    settings = ShelfSettings.from_cli(library_root=library_root)
    s = LibraryStore(settings)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def _isolated_library(library_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp library root so the CLI opens an isolated library.

    Use via ``@pytest.mark.usefixtures("_isolated_library")`` on command
    test classes.
    """
    monkeypatch.chdir(library_root)


# ---------------------------------------------------------------------------
# Shared test helpers (used across service test modules)
# ---------------------------------------------------------------------------

def next_isbn() -> str:
    """A fresh, valid 13-digit ISBN for each call."""
    return f"978{uuid.uuid4().int % 10**10:010d}"


def add_book(store: LibraryStore, title: str = "Dune", *, copies: int = 1, **kwargs: Any) -> dict[str, Any]:
    """Catalog a book via CatalogService, asserting success."""
    from shelfctl.services.catalog import CatalogService

    fields = {"author": "Frank Herbert", "isbn": next_isbn(), "category": "Fiction", **kwargs}
    result = CatalogService(store).add_book(title, total_copies=copies, **fields)
    assert result.ok, result.error
    return result.data


def register_member(store: LibraryStore, name: str = "Ada Lovelace", **kwargs: Any) -> dict[str, Any]:
    """Register a member via MemberService, asserting success."""
    from shelfctl.services.members import MemberService

    slug = name.lower().replace(" ", ".")
    fields = {"email": f"{slug}@example.org", "phone": "555-0100", **kwargs}
    result = MemberService(store).register(name, **fields)
    assert result.ok, result.error
    return result.data


def issue(store: LibraryStore, book_id: str, member_id: str) -> dict[str, Any]:
    """Issue a book via CirculationService, asserting success."""
    from shelfctl.services.circulation import CirculationService

    result = CirculationService(store).issue(book_id, member_id)
    assert result.ok, result.error
    return result.data
