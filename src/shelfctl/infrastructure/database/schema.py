"""SQLAlchemy Core table definitions for the shelfctl database.

The copy-count bounds and the one-active-loan-per-(book, member) rule are
declared here as CHECK constraints and a partial unique index, so even a
buggy write path is rejected by SQLite itself.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)

metadata = MetaData()

books = Table(
    "books",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("author", Text, nullable=False),
    Column("isbn", Text, nullable=False, unique=True),
    Column("category", Text, nullable=False),
    Column("total_copies", Integer, nullable=False),
    Column("available_copies", Integer, nullable=False),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
    CheckConstraint("total_copies >= 1", name="ck_books_total_min"),
    CheckConstraint("available_copies >= 0", name="ck_books_available_min"),
    CheckConstraint("available_copies <= total_copies", name="ck_books_available_max"),
)

members = Table(
    "members",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("email", Text, nullable=False, unique=True),
    Column("phone", Text, nullable=False),
    Column("joined", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

loans = Table(
    "loans",
    metadata,
    Column("id", Text, primary_key=True),
    Column("book_id", Text, ForeignKey("books.id"), nullable=False),
    Column("member_id", Text, ForeignKey("members.id"), nullable=False),
    Column("status", Text, nullable=False),
    Column("issued_at", Text, nullable=False),
    Column("returned_at", Text),
    Column("issued_by", Text, nullable=False),
    CheckConstraint("status IN ('active', 'returned')", name="ck_loans_status"),
)

# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------

Index("ix_books_category", books.c.category)
Index("ix_loans_book", loans.c.book_id)
Index("ix_loans_member", loans.c.member_id)
Index("ix_loans_status", loans.c.status)
Index(
    "ux_loans_active_pair",
    loans.c.book_id,
    loans.c.member_id,
    unique=True,
    sqlite_where=loans.c.status == "active",
)

id_counters = Table(
    "id_counters",
    metadata,
    Column("type_prefix", Text, primary_key=True),
    Column("next_value", Integer, nullable=False, default=1, server_default="1"),
)

event_wal = Table(
    "event_wal",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hook_name", Text, nullable=False),
    Column("payload", Text, nullable=False),  # JSON
    Column("status", Text, nullable=False),
    Column("error", Text),
    Column("retries", Integer, default=0, server_default="0"),
    Column("created", Text, nullable=False),
    Column("completed", Text),
)
