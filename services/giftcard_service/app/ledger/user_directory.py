from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import User


class UserDirectory:
    """Read-only view of the users cards can be assigned to."""

    async def exists(self, session: AsyncSession, user_id: int) -> bool:
        found = await session.scalar(select(User.user_id).where(User.user_id == user_id))
        return found is not None
