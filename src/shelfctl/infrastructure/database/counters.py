"""Atomic sequential ID generation for books, members, and loans.

Uses the ``id_counters`` table inside the caller's transaction, so a
rolled-back issue never burns a loan ID and two writers never claim the
same one.

The caller owns the transaction — pass a ``Connection`` obtained from
``engine.begin()`` so the counter increment participates in the same
atomic transaction as the surrounding writes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update

from shelfctl.domain.ids import TYPE_PREFIXES, format_id
from shelfctl.infrastructure.database.schema import id_counters

if TYPE_CHECKING:
    from sqlalchemy import Connection

SEQUENTIAL_PREFIXES = tuple(TYPE_PREFIXES.values())
_VALID_PREFIXES = frozenset(SEQUENTIAL_PREFIXES)


def next_sequential_id(conn: Connection, type_prefix: str) -> str:
    """Claim the next sequential ID for *type_prefix*.

    Args:
        conn: Active SQLAlchemy connection (caller owns the transaction).
        type_prefix: One of ``"BK-"``, ``"MEM-"`` or ``"LOAN-"``.

    Returns:
        The new ID string (e.g. ``"BK-0001"`` or ``"LOAN-0042"``).

    Raises:
        ValueError: If *type_prefix* is not a recognized sequential type.
    """
    if type_prefix not in _VALID_PREFIXES:
        msg = (
            f"Unknown sequential type prefix: {type_prefix!r}. "
            f"Expected one of {sorted(_VALID_PREFIXES)}"
        )
        raise ValueError(msg)

    current_value: int = conn.execute(
        select(id_counters.c.next_value).where(id_counters.c.type_prefix == type_prefix)
    ).scalar_one()

    conn.execute(
        update(id_counters)
        .where(id_counters.c.type_prefix == type_prefix)
        .values(next_value=current_value + 1)
    )

    return format_id(type_prefix, current_value)
