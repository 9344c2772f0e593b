from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Sequence, TypeVar

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import CardStatus, GiftCard
from .card_ids import CardIdGenerator
from .locks import CardLocks
from .unit_of_work import unit_of_work

T = TypeVar("T")

Mutator = Callable[[AsyncSession, "GiftCard | None"], Awaitable[T]]


def utcnow() -> datetime:
    # Columns are timezone-naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class CardSpec:
    initial_balance: Decimal
    expiration_date: date
    status: CardStatus
    user_id: int | None = None


class CardStore:
    """Owns the ``gift_cards`` rows and the exclusive-access protocol around them."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], locks: CardLocks | None = None) -> None:
        self.session_factory = session_factory
        self.locks = locks or CardLocks()

    async def get(self, session: AsyncSession, card_id: str, *, for_update: bool = False) -> GiftCard | None:
        stmt = select(GiftCard).where(GiftCard.card_id == card_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, session: AsyncSession, card_id: str) -> bool:
        found = await session.scalar(select(GiftCard.card_id).where(GiftCard.card_id == card_id))
        return found is not None

    async def create_many(
        self,
        session: AsyncSession,
        specs: Sequence[CardSpec],
        generator: CardIdGenerator,
    ) -> list[str]:
        """Insert one card per spec inside the caller's transaction and return their ids."""

        async def taken(candidate: str) -> bool:
            return await self.exists(session, candidate)

        card_ids: list[str] = []
        for spec in specs:
            card_id = await generator.generate(taken, reserved=card_ids)
            card_ids.append(card_id)
            session.add(
                GiftCard(
                    card_id=card_id,
                    initial_balance=spec.initial_balance,
                    current_balance=spec.initial_balance,
                    expiration_date=spec.expiration_date,
                    status=spec.status.value,
                    user_id=spec.user_id,
                )
            )
        await session.flush()
        return card_ids

    async def update_exclusive(self, card_id: str, mutator: Mutator[T]) -> T:
        """Run ``mutator`` against the row-locked card and commit what it changed.

        The mutator receives ``None`` when the card does not exist. Whatever it
        returns is committed; raising rolls the whole transaction back.
        """
        async with self.locks.hold(card_id):
            async with unit_of_work(self.session_factory) as session:
                await self._bound_lock_wait(session)
                card = await self.get(session, card_id, for_update=True)
                return await mutator(session, card)

    async def expire_due(self, today: date) -> int:
        async with unit_of_work(self.session_factory) as session:
            result = await session.execute(
                update(GiftCard)
                .where(GiftCard.status == CardStatus.active.value, GiftCard.expiration_date < today)
                .values(status=CardStatus.expired.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    async def _bound_lock_wait(self, session: AsyncSession) -> None:
        bind = session.bind
        if bind is not None and bind.dialect.name == "postgresql":
            timeout_ms = int(self.locks.timeout * 1000)
            await session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
