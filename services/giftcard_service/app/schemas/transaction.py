from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from ..models import TransactionType


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: int
    card_id: str | None
    user_id: int | None
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: datetime
    notes: str | None


class CardStatementResponse(BaseModel):
    card_id: str
    entries: list[TransactionResponse]
    next_cursor: int | None


class StatusSummaryResponse(BaseModel):
    total_issued: int
    by_status: dict[str, int]


class CardsByUserEntry(BaseModel):
    user_id: int | None
    cards_count: int


class RedemptionTotalResponse(BaseModel):
    total_redeemed: Decimal
