from __future__ import annotations

import logging
import secrets
import string
from typing import Awaitable, Callable, Collection

from .errors import CardIdGenerationExhausted, LedgerValidationError

logger = logging.getLogger(__name__)

CARD_ID_ALPHABET = string.ascii_lowercase + string.digits


class CardIdGenerator:
    """Draws short random card codes and retries on collision up to a fixed budget."""

    def __init__(
        self,
        length: int = 7,
        max_attempts: int = 10,
        token: Callable[[int], str] | None = None,
    ) -> None:
        if length <= 0 or max_attempts <= 0:
            raise LedgerValidationError("card id length and attempt budget must be positive")
        self.length = length
        self.max_attempts = max_attempts
        self._token = token or self._random_token

    @staticmethod
    def _random_token(length: int) -> str:
        return "".join(secrets.choice(CARD_ID_ALPHABET) for _ in range(length))

    async def generate(
        self,
        exists: Callable[[str], Awaitable[bool]],
        reserved: Collection[str] = (),
    ) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = self._token(self.length)
            if candidate in reserved or await exists(candidate):
                logger.info("giftcard.card_id.collision", extra={"attempt": attempt})
                continue
            return candidate
        logger.error("giftcard.card_id.exhausted", extra={"attempts": self.max_attempts})
        raise CardIdGenerationExhausted(f"No free card id after {self.max_attempts} attempts")
