"""gift card tables

Revision ID: giftcard_20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "giftcard_20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=100), nullable=False, unique=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "gift_cards",
        sa.Column("card_id", sa.String(length=7), primary_key=True),
        sa.Column("initial_balance", sa.Numeric(10, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(10, 2), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("current_balance >= 0", name="ck_gift_cards_balance_non_negative"),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'blocked', 'expired')",
            name="ck_gift_cards_status",
        ),
    )
    op.create_index("ix_gift_cards_user_id", "gift_cards", ["user_id"])
    op.create_index("ix_gift_cards_status_expiry", "gift_cards", ["status", "expiration_date"])

    op.create_table(
        "gift_card_transactions",
        sa.Column("transaction_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        # No FK on card_id: history must outlive the card row
        sa.Column("card_id", sa.String(length=7), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column("transaction_type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("transaction_date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("notes", sa.String(length=255), nullable=True),
        sa.CheckConstraint(
            "transaction_type IN ('redemption', 'recharge', 'transfer_out', 'transfer_in')",
            name="ck_gift_card_transactions_type",
        ),
    )
    op.create_index("ix_gift_card_transactions_user_id", "gift_card_transactions", ["user_id"])
    op.create_index("ix_gift_card_transactions_card", "gift_card_transactions", ["card_id", "transaction_id"])


def downgrade() -> None:
    op.drop_index("ix_gift_card_transactions_card", table_name="gift_card_transactions")
    op.drop_index("ix_gift_card_transactions_user_id", table_name="gift_card_transactions")
    op.drop_table("gift_card_transactions")
    op.drop_index("ix_gift_cards_status_expiry", table_name="gift_cards")
    op.drop_index("ix_gift_cards_user_id", table_name="gift_cards")
    op.drop_table("gift_cards")
    op.drop_table("users")
