from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .errors import CardLockTimeout


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class CardLocks:
    """Per-card mutexes for this process.

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the registry only ever contains cards currently being mutated.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, card_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(card_id)
        if entry is None:
            entry = self._entries[card_id] = _Entry()
        entry.holders += 1
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                raise CardLockTimeout(f"Gift card {card_id} is busy, retry later") from exc
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._entries.pop(card_id, None)
