# ruff: noqa: I001
"""Captured notification table.

Revision ID: 0001_kf_notifications
Revises: None
Create Date: 2025-10-02
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_kf_notifications"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # SQLite only auto-increments INTEGER primary keys.
    id_type = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
    # SQLite has no now(); CURRENT_TIMESTAMP is portable.
    ts_default = sa.text("CURRENT_TIMESTAMP")

    op.create_table(
        "kf_notifications",
        sa.Column("id", id_type, primary_key=True, autoincrement=True),
        sa.Column("sender_id", sa.String(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("body", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("received_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("amount_text", sa.Text(), nullable=True),
        sa.Column("currency_label", sa.String(), nullable=True),
        sa.Column("counterparty_label", sa.Text(), nullable=True),
        sa.Column("is_incoming", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("provider_tag", sa.String(), nullable=False),
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column("is_recognized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_tag", sa.String(), nullable=True),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deletion_at_ms", sa.BigInteger(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=ts_default,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=ts_default,
        ),
        sa.CheckConstraint(
            (
                "provider_tag in ('personal_wallet','business_wallet',"
                "'aggregator_a','aggregator_b','unknown')"
            ),
            name="ck_kf_notif_provider_tag",
        ),
        sa.CheckConstraint(
            "amount IS NULL OR amount >= 0",
            name="ck_kf_notif_amount_non_negative",
        ),
    )

    # Duplicate guard lookups: provider + time window, provider + reference.
    op.create_index(
        "ix_kf_notif_provider_received",
        "kf_notifications",
        ["provider_tag", "received_at_ms"],
    )
    op.create_index(
        "ix_kf_notif_provider_reference",
        "kf_notifications",
        ["provider_tag", "reference"],
    )


def downgrade() -> None:
    op.drop_index("ix_kf_notif_provider_reference", table_name="kf_notifications")
    op.drop_index("ix_kf_notif_provider_received", table_name="kf_notifications")
    op.drop_table("kf_notifications")
