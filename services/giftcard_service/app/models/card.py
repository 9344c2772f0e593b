from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from services.giftcard_service.app.db.base import Base


class CardStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    blocked = "blocked"
    expired = "expired"


class GiftCard(Base):
    __tablename__ = "gift_cards"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_gift_cards_balance_non_negative"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'blocked', 'expired')",
            name="ck_gift_cards_status",
        ),
        Index("ix_gift_cards_status_expiry", "status", "expiration_date"),
    )

    card_id: Mapped[str] = mapped_column(String(7), primary_key=True)
    initial_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # Authoritative balance; every change goes through the ledger engine
    current_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=CardStatus.active.value)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), index=True, nullable=True, default=None
    )

    created_at: Mapped[datetime] = mapped_column(server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    def is_past_expiry(self, today: date) -> bool:
        return self.expiration_date < today
