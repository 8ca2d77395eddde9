"""Baseline schema — books, members, loans, counters, event WAL.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-05

Fresh databases are stamped at head on creation without running this;
it exists so ``shelfctl upgrade`` can rebuild a schema from nothing.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    op.create_table(
        "books",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("author", sa.Text, nullable=False),
        sa.Column("isbn", sa.Text, nullable=False, unique=True),
        sa.Column("category", sa.Text, nullable=False),
        sa.Column("total_copies", sa.Integer, nullable=False),
        sa.Column("available_copies", sa.Integer, nullable=False),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
        sa.CheckConstraint("total_copies >= 1", name="ck_books_total_min"),
        sa.CheckConstraint("available_copies >= 0", name="ck_books_available_min"),
        sa.CheckConstraint("available_copies <= total_copies", name="ck_books_available_max"),
    )
    op.create_index("ix_books_category", "books", ["category"])

    op.create_table(
        "members",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=False, unique=True),
        sa.Column("phone", sa.Text, nullable=False),
        sa.Column("joined", sa.Text, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
    )

    op.create_table(
        "loans",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("book_id", sa.Text, sa.ForeignKey("books.id"), nullable=False),
        sa.Column("member_id", sa.Text, sa.ForeignKey("members.id"), nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("issued_at", sa.Text, nullable=False),
        sa.Column("returned_at", sa.Text),
        sa.Column("issued_by", sa.Text, nullable=False),
        sa.CheckConstraint("status IN ('active', 'returned')", name="ck_loans_status"),
    )
    op.create_index("ix_loans_book", "loans", ["book_id"])
    op.create_index("ix_loans_member", "loans", ["member_id"])
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index(
        "ux_loans_active_pair",
        "loans",
        ["book_id", "member_id"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "id_counters",
        sa.Column("type_prefix", sa.Text, primary_key=True),
        sa.Column("next_value", sa.Integer, nullable=False, server_default="1"),
    )

    op.create_table(
        "event_wal",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("hook_name", sa.Text, nullable=False),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("error", sa.Text),
        sa.Column("retries", sa.Integer, server_default="0"),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("completed", sa.Text),
    )


def downgrade() -> None:
    op.drop_table("event_wal")
    op.drop_table("id_counters")
    op.drop_index("ux_loans_active_pair", table_name="loans")
    op.drop_index("ix_loans_status", table_name="loans")
    op.drop_index("ix_loans_member", table_name="loans")
    op.drop_index("ix_loans_book", table_name="loans")
    op.drop_table("loans")
    op.drop_table("members")
    op.drop_index("ix_books_category", table_name="books")
    op.drop_table("books")
