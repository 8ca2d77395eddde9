"""ID patterns and prefixes for library records.

All three record kinds use sequential IDs claimed atomically from the
``id_counters`` table inside the writing transaction. Minimum 4 digits,
grows naturally past 9999.

INVARIANT: IDs are permanent. Once claimed, an ID is never reused.
"""

from __future__ import annotations

import re

TYPE_PREFIXES: dict[str, str] = {
    "book": "BK-",
    "member": "MEM-",
    "loan": "LOAN-",
}

ID_PATTERNS: dict[str, re.Pattern[str]] = {
    "book": re.compile(r"^BK-\d{4,}$"),
    "member": re.compile(r"^MEM-\d{4,}$"),
    "loan": re.compile(r"^LOAN-\d{4,}$"),
}


def validate_id(record_id: str, record_type: str) -> bool:
    """Check whether *record_id* matches the expected pattern for *record_type*."""
    pattern = ID_PATTERNS.get(record_type)
    if pattern is None:
        return False
    return pattern.match(record_id) is not None


def format_id(prefix: str, value: int) -> str:
    """Render a counter value as an ID, e.g. ``("BK-", 7) -> "BK-0007"``."""
    return f"{prefix}{value:04d}"
