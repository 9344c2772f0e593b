from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ..models import CardStatus


class CardIssueRequest(BaseModel):
    initial_balance: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    expiration_date: date
    owner_user_id: int | None = Field(None, description="Assign the card to this user at issuance")


class BulkIssueRequest(CardIssueRequest):
    count: int = Field(..., gt=0)


class CardIssueResponse(BaseModel):
    card_id: str


class BulkIssueResponse(BaseModel):
    card_ids: list[str]
    message: str


class CardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    card_id: str
    initial_balance: Decimal
    current_balance: Decimal
    expiration_date: date
    status: CardStatus
    user_id: int | None
    created_at: datetime
    updated_at: datetime


class AmountRequest(BaseModel):
    """Body for redeem/recharge. Sign checks happen in the ledger so they report as rejections."""

    amount: Decimal = Field(..., max_digits=10, decimal_places=2)


class TransferRequest(BaseModel):
    to_user_id: int


class StatusChangeRequest(BaseModel):
    status: CardStatus


class OwnerAssignRequest(BaseModel):
    user_id: int | None


class OperationResponse(BaseModel):
    success: bool
    message: str
    reason: str
    card: CardResponse | None = None


class ExpirySweepResponse(BaseModel):
    expired: int
