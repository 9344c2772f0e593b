from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import CardLockTimeout, LedgerInfrastructureError

logger = logging.getLogger(__name__)

# lock_not_available / query_canceled (raised by lock_timeout and statement_timeout)
_LOCK_SQLSTATES = {"55P03", "57014"}


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _LOCK_SQLSTATES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(orig)


@asynccontextmanager
async def unit_of_work(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Open a session inside one database transaction.

    Commits when the block exits normally and rolls back on any exception.
    Driver and ORM failures surface as ``LedgerInfrastructureError`` (or
    ``CardLockTimeout`` when the row lock could not be taken in time).
    """
    try:
        async with session_factory() as session:
            async with session.begin():
                yield session
    except DBAPIError as exc:
        if _is_lock_timeout(exc):
            logger.warning("giftcard.db.lock_timeout", extra={"error": str(exc.orig)})
            raise CardLockTimeout("Gift card is locked by another operation, retry later") from exc
        logger.error("giftcard.db.error", extra={"error": str(exc.orig)})
        raise LedgerInfrastructureError("Gift card store is unavailable") from exc
    except SQLAlchemyError as exc:
        logger.error("giftcard.db.error", extra={"error": str(exc)})
        raise LedgerInfrastructureError("Gift card store is unavailable") from exc
