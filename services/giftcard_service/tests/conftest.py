from __future__ import annotations

from datetime import date, timedelta

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from services.giftcard_service.app.db.base import Base
from services.giftcard_service.app.ledger import LedgerEngine, LedgerReports
from services.giftcard_service.app.models import User

TODAY = date(2026, 10, 19)
U1, U2, U3 = 1, 2, 3


class FakeClock:
    """Callable returning a settable 'today' for the ledger engine."""

    def __init__(self, today: date = TODAY) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> None:
        self.today = self.today + timedelta(days=days)


@pytest_asyncio.fixture()
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async with factory() as session:
        session.add_all(
            [
                User(user_id=U1, username="John", email="John@example.com"),
                User(user_id=U2, username="Joy", email="Joy@example.com"),
                User(user_id=U3, username="Raju", email="Raju@example.com"),
            ]
        )
        await session.commit()

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture()
async def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture()
async def ledger(session_factory, clock) -> LedgerEngine:
    return LedgerEngine(session_factory, clock=clock)


@pytest_asyncio.fixture()
async def reports(session_factory) -> LedgerReports:
    return LedgerReports(session_factory)
