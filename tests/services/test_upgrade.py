"""Tests for UpgradeService — Alembic migrations with pre-upgrade backup."""

from __future__ import annotations

import sqlite3

from shelfctl.infrastructure.store import LibraryStore
from shelfctl.services.upgrade import UpgradeService
from tests.conftest import add_book


def _unstamp(store: LibraryStore) -> None:
    conn = sqlite3.connect(store.db_path)
    try:
        with conn:
            conn.execute("DELETE FROM alembic_version")
    finally:
        conn.close()


class TestCheckPending:
    def test_fresh_library_is_current(self, store: LibraryStore) -> None:
        result = UpgradeService(store).check_pending()
        assert result.ok
        assert result.data["pending_count"] == 0
        assert result.data["current"] == result.data["head"] == "001_baseline"

    def test_unstamped_library_has_pending(self, store: LibraryStore) -> None:
        _unstamp(store)
        result = UpgradeService(store).check_pending()
        assert result.data["current"] is None
        assert [p["revision"] for p in result.data["pending"]] == ["001_baseline"]


class TestApply:
    def test_nothing_to_do(self, store: LibraryStore) -> None:
        result = UpgradeService(store).apply()
        assert result.ok
        assert result.data["applied_count"] == 0
        assert "up to date" in result.data["message"]
        assert not list((store.db_path.parent / "backups").glob("*.db"))

    def test_stamps_existing_schema(self, store: LibraryStore) -> None:
        add_book(store, "Dune")
        _unstamp(store)

        result = UpgradeService(store).apply()
        assert result.ok, result.error
        assert result.data["applied_count"] == 1
        assert result.warnings == []
        assert UpgradeService(store).check_pending().data["pending_count"] == 0

    def test_backup_written_first(self, store: LibraryStore) -> None:
        _unstamp(store)
        result = UpgradeService(store).apply()
        backup = result.data["backup_path"]
        conn = sqlite3.connect(backup)
        try:
            rows = conn.execute("SELECT version_num FROM alembic_version").fetchall()
        finally:
            conn.close()
        # The backup predates the stamp.
        assert rows == []
