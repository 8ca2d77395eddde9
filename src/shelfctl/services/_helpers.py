"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


def now_iso() -> str:
    """Current UTC time as standard ISO 8601."""
    return datetime.now(UTC).isoformat()


def now_compact() -> str:
    """Current UTC time as compact ISO (YYYYMMDDTHHmmss, for backup filenames)."""
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%S")


def row_dict(row: Any) -> dict[str, Any]:
    """Convert a SQLAlchemy Row to a plain dict."""
    return dict(row._mapping)


def page_bounds(limit: int, offset: int, *, max_limit: int = 200) -> tuple[int, int]:
    """Clamp pagination arguments to sane values.

    Examples:
        >>> page_bounds(20, 0)
        (20, 0)
        >>> page_bounds(0, -5)
        (1, 0)
        >>> page_bounds(1000, 10)
        (200, 10)
    """
    return max(1, min(limit, max_limit)), max(0, offset)
