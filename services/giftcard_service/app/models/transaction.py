from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from services.giftcard_service.app.db.base import Base


class TransactionType(str, Enum):
    redemption = "redemption"
    recharge = "recharge"
    transfer_out = "transfer_out"
    transfer_in = "transfer_in"


class CardTransaction(Base):
    """Append-only audit record of a balance or ownership change.

    ``card_id`` carries no foreign key so history survives a card row going
    away; ``user_id`` is nulled when the user is deleted.
    """

    __tablename__ = "gift_card_transactions"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('redemption', 'recharge', 'transfer_out', 'transfer_in')",
            name="ck_gift_card_transactions_type",
        ),
        Index("ix_gift_card_transactions_card", "card_id", "transaction_id"),
    )

    # BigInteger on the server, plain INTEGER on sqlite so it still autoincrements
    transaction_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    card_id: Mapped[str | None] = mapped_column(String(7), nullable=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), index=True, nullable=True
    )
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
