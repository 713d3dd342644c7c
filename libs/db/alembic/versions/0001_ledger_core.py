# ruff: noqa: I001
"""Ledger import core tables.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("identifier", sa.String(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'EUR'")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "identifier", name="uq_accounts_user_identifier"),
    )

    op.create_table(
        "ledgers",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_by", sa.String(), nullable=True),
        sa.Column("lock_note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_ledgers_user_period"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_ledgers_month"),
    )

    op.create_table(
        "opening_balances",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.BigInteger(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_by", sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "account_id", "effective_date", name="uq_opening_balances_account_date"
        ),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "parent_id",
            sa.BigInteger(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
    )

    op.create_table(
        "categorization_rules",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("pattern", sa.Text(), nullable=False),
        sa.Column("match_type", sa.String(), nullable=False, server_default=sa.text("'regex'")),
        sa.Column(
            "match_field", sa.String(), nullable=False, server_default=sa.text("'description'")
        ),
        sa.Column(
            "category_id",
            sa.BigInteger(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("last_matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invalid_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "match_type in ('contains','startsWith','endsWith','regex')",
            name="ck_rules_match_type",
        ),
        sa.CheckConstraint(
            "match_field in ('description','counterparty','reference','source')",
            name="ck_rules_match_field",
        ),
    )
    op.create_index(
        "ix_rules_user_active_priority",
        "categorization_rules",
        ["user_id", "is_active", "priority"],
    )

    op.create_table(
        "import_batches",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("format", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("total_rows", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("imported_rows", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("duplicate_rows", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("error_rows", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "auto_categorized_rows", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status in ('pending','completed')", name="ck_import_batches_status"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column(
            "account_id",
            sa.BigInteger(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("ledger_id", sa.BigInteger(), sa.ForeignKey("ledgers.id"), nullable=False),
        sa.Column(
            "import_batch_id",
            sa.BigInteger(),
            sa.ForeignKey("import_batches.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("hash", sa.CHAR(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("normalized_description", sa.Text(), nullable=False),
        sa.Column("counterparty", sa.Text(), nullable=True),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("source_file", sa.Text(), nullable=True),
        sa.Column("raw", sa.JSON(), nullable=False),
        sa.Column(
            "category_id",
            sa.BigInteger(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "classification_source",
            sa.String(),
            nullable=False,
            server_default=sa.text("'import'"),
        ),
        sa.Column(
            "classification_rule_id",
            sa.BigInteger(),
            sa.ForeignKey("categorization_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("suggestion_confidence", sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "hash", name="uq_transactions_user_hash"),
        sa.CheckConstraint(
            "classification_source in ('manual','rule','history','import')",
            name="ck_transactions_classification_source",
        ),
        sa.CheckConstraint(
            "direction in ('credit','debit')", name="ck_transactions_direction"
        ),
        sa.CheckConstraint(
            (
                "suggestion_confidence IS NULL OR suggestion_confidence in "
                "('exact','description','account','overall','review')"
            ),
            name="ck_transactions_suggestion_confidence",
        ),
    )
    op.create_index("ix_transactions_account_date", "transactions", ["account_id", "date"])
    op.create_index(
        "ix_transactions_user_source", "transactions", ["user_id", "classification_source"]
    )


def downgrade() -> None:
    op.drop_index("ix_transactions_user_source", table_name="transactions")
    op.drop_index("ix_transactions_account_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("import_batches")
    op.drop_index("ix_rules_user_active_priority", table_name="categorization_rules")
    op.drop_table("categorization_rules")
    op.drop_table("categories")
    op.drop_table("opening_balances")
    op.drop_table("ledgers")
    op.drop_table("accounts")
