"""Expire every active gift card whose expiration date has passed.

Meant to be run once a day by cron or a Kubernetes CronJob:

    python -m scripts.expire_gift_cards
"""

import asyncio

from loguru import logger

from services.giftcard_service.app.db.session import async_engine, async_session_factory
from services.giftcard_service.app.ledger import LedgerEngine
from services.giftcard_service.app.settings import giftcard_settings
from services.giftcard_service.app.startup import setup_logging


async def run() -> int:
    ledger = LedgerEngine.from_settings(async_session_factory, giftcard_settings())
    try:
        return await ledger.expire_due()
    finally:
        await async_engine.dispose()


def main() -> None:
    setup_logging()
    expired = asyncio.run(run())
    logger.info("Expiry sweep finished: {} card(s) expired.", expired)


if __name__ == "__main__":
    main()
