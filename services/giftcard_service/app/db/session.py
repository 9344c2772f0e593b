from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from services.giftcard_service.app.settings import giftcard_settings


def build_engine(database_url: str | None = None) -> AsyncEngine:
    url = database_url or giftcard_settings().async_db_url
    kwargs: dict[str, object] = {"echo": False}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async_engine = build_engine()
async_session_factory = build_session_factory(async_engine)
