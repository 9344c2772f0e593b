from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import CardTransaction, TransactionType


@dataclass(frozen=True)
class TransactionFilter:
    card_id: str | None = None
    user_id: int | None = None
    transaction_type: TransactionType | None = None
    after_id: int | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = None


class TransactionLog:
    """Append-only access to ``gift_card_transactions``.

    Records are only ever added, inside the same transaction as the card
    change they describe.
    """

    async def append(
        self,
        session: AsyncSession,
        *,
        card_id: str,
        user_id: int | None,
        transaction_type: TransactionType,
        amount: Decimal,
        notes: str | None = None,
    ) -> CardTransaction:
        record = CardTransaction(
            card_id=card_id,
            user_id=user_id,
            transaction_type=transaction_type.value,
            amount=amount,
            notes=notes,
        )
        session.add(record)
        # Flush now so a failed insert aborts the enclosing operation
        await session.flush()
        return record

    async def scan(self, session: AsyncSession, criteria: TransactionFilter | None = None) -> list[CardTransaction]:
        criteria = criteria or TransactionFilter()
        stmt = select(CardTransaction).order_by(CardTransaction.transaction_id)
        if criteria.card_id is not None:
            stmt = stmt.where(CardTransaction.card_id == criteria.card_id)
        if criteria.user_id is not None:
            stmt = stmt.where(CardTransaction.user_id == criteria.user_id)
        if criteria.transaction_type is not None:
            stmt = stmt.where(CardTransaction.transaction_type == criteria.transaction_type.value)
        if criteria.after_id is not None:
            stmt = stmt.where(CardTransaction.transaction_id > criteria.after_id)
        if criteria.since is not None:
            stmt = stmt.where(CardTransaction.transaction_date >= criteria.since)
        if criteria.until is not None:
            stmt = stmt.where(CardTransaction.transaction_date < criteria.until)
        if criteria.limit is not None:
            stmt = stmt.limit(criteria.limit)
        return list(await session.scalars(stmt))

    async def total(
        self,
        session: AsyncSession,
        transaction_type: TransactionType,
        card_id: str | None = None,
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(CardTransaction.amount), 0)).where(
            CardTransaction.transaction_type == transaction_type.value
        )
        if card_id is not None:
            stmt = stmt.where(CardTransaction.card_id == card_id)
        value = await session.scalar(stmt)
        return Decimal(str(value or 0)).quantize(Decimal("0.01"))
