from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import CardStatus, CardTransaction, GiftCard, TransactionType
from .errors import CardNotFoundError, LedgerValidationError
from .transaction_log import TransactionFilter, TransactionLog
from .unit_of_work import unit_of_work

MAX_PAGE_SIZE = 200


@dataclass
class StatusSummary:
    total_issued: int
    by_status: dict[str, int] = field(default_factory=dict)


@dataclass
class CardHistoryPage:
    card_id: str
    entries: list[CardTransaction]
    next_cursor: int | None


class LedgerReports:
    """Read-only aggregates over cards and the transaction log. Takes no card locks."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], transactions: TransactionLog | None = None) -> None:
        self.session_factory = session_factory
        self.transactions = transactions or TransactionLog()

    async def get_card(self, card_id: str) -> GiftCard:
        async with unit_of_work(self.session_factory) as session:
            card = await session.get(GiftCard, card_id)
        if card is None:
            raise CardNotFoundError("Gift card not found")
        return card

    async def status_summary(self) -> StatusSummary:
        async with unit_of_work(self.session_factory) as session:
            rows = (await session.execute(select(GiftCard.status, func.count()).group_by(GiftCard.status))).all()
        by_status = {status.value: 0 for status in CardStatus}
        for status, count in rows:
            by_status[status] = count
        return StatusSummary(total_issued=sum(by_status.values()), by_status=by_status)

    async def cards_by_user(self) -> dict[int | None, int]:
        async with unit_of_work(self.session_factory) as session:
            rows = (await session.execute(select(GiftCard.user_id, func.count()).group_by(GiftCard.user_id))).all()
        return {user_id: count for user_id, count in rows}

    async def total_redeemed(self) -> Decimal:
        async with unit_of_work(self.session_factory) as session:
            return await self.transactions.total(session, TransactionType.redemption)

    async def card_history(self, card_id: str, cursor: int | None = None, limit: int = 50) -> CardHistoryPage:
        if limit <= 0 or limit > MAX_PAGE_SIZE:
            raise LedgerValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        async with unit_of_work(self.session_factory) as session:
            if await session.get(GiftCard, card_id) is None:
                raise CardNotFoundError("Gift card not found")
            rows = await self.transactions.scan(
                session, TransactionFilter(card_id=card_id, after_id=cursor, limit=limit + 1)
            )
        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = rows[-1].transaction_id
        return CardHistoryPage(card_id=card_id, entries=rows, next_cursor=next_cursor)

    async def replay_balance(self, card_id: str) -> Decimal:
        """Rebuild a card's balance from its initial value and logged movements."""
        async with unit_of_work(self.session_factory) as session:
            card = await session.get(GiftCard, card_id)
            if card is None:
                raise CardNotFoundError("Gift card not found")
            recharged = await self.transactions.total(session, TransactionType.recharge, card_id=card_id)
            redeemed = await self.transactions.total(session, TransactionType.redemption, card_id=card_id)
        return (card.initial_balance + recharged - redeemed).quantize(Decimal("0.01"))
