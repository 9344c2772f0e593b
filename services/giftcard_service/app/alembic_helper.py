import asyncio
import os

from alembic import command
from alembic.config import Config
from loguru import logger

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "db", "migrations")


def _upgrade(database_dsn: str) -> None:
    alembic_cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", MIGRATIONS_DIR)
    alembic_cfg.set_main_option("sqlalchemy.url", database_dsn)
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")


async def run_alembic_migrations(database_dsn: str) -> None:
    """Apply the gift card schema migrations up to head.

    Alembic is synchronous, so the upgrade runs in a worker thread to keep
    the event loop free during startup.
    """
    alembic_ini_path = os.path.join(MIGRATIONS_DIR, "alembic.ini")
    if not os.path.exists(alembic_ini_path):
        logger.warning("Alembic config not found at {}, skipping migrations.", alembic_ini_path)
        return

    logger.info("Running Alembic migrations...")
    try:
        await asyncio.to_thread(_upgrade, database_dsn)
    except Exception as e:
        logger.error("Alembic migration failed: {}", e)
        raise
    logger.info("Alembic migrations applied successfully.")
