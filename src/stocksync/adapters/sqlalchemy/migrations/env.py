"""Alembic environment for the stocksync schema.

``upgrade_head`` either hands over an open connection through
``config.attributes["connection"]`` or sets ``sqlalchemy.url``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from stocksync.adapters.sqlalchemy.mappings import mapper_registry
from stocksync.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config
target_metadata = mapper_registry.metadata


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(**options: object) -> None:
    context.configure(target_metadata=target_metadata, render_as_batch=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def _migrate_connection(connection: Connection) -> None:
    _migrate(connection=connection, compare_type=True)


def run_migrations() -> None:
    if context.is_offline_mode():
        _migrate(url=_database_url(), literal_binds=True)
        return

    connection = config.attributes.get("connection")
    if connection is not None:
        _migrate_connection(connection)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _migrate_connection(connection)
    finally:
        engine.dispose()


run_migrations()
