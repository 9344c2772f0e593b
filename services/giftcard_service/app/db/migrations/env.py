from __future__ import annotations

from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

from services.giftcard_service.app import models  # noqa: F401  registers gift card tables
from services.giftcard_service.app.db.base import Base
from services.giftcard_service.app.settings import giftcard_settings

config = context.config

# alembic_helper sets configure_logger=False so Loguru keeps control inside the service
if config.config_file_name and Path(config.config_file_name).exists() and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata
COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def migration_url() -> str:
    """The explicit sqlalchemy.url if one was set, else the service's sync database URL."""
    url = config.get_main_option("sqlalchemy.url")
    if url and not url.endswith(":memory:"):
        return url
    return giftcard_settings().sync_db_url


def run_migrations_offline() -> None:
    context.configure(url=migration_url(), target_metadata=target_metadata, literal_binds=True, **COMPARE_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, **COMPARE_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
