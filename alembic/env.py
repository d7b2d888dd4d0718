"""Alembic environment for Tally's SQLite event store.

The URL resolves the same way the bot resolves it (``DATABASE_URL``, then
``alembic.ini``, then ``sqlite:///data/tally.db``), and online migrations
connect through :func:`tally.database.engine.create_db_engine` so they get
the bot's WAL pragmas and the data directory is created on a fresh
install.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv

from alembic import context

load_dotenv()

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from tally.database.engine import DEFAULT_DATABASE_URL, create_db_engine  # noqa: E402
from tally.database.models import Base  # noqa: E402

target_metadata = Base.metadata


def _database_url() -> str:
    return (
        os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
        or DEFAULT_DATABASE_URL
    )


def run_migrations_offline() -> None:
    """Emit SQL for the event tables without connecting."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrate the live store.

    SQLite can't ALTER most columns in place, so revisions are rendered in
    batch mode (copy-and-move tables).
    """
    engine = create_db_engine(_database_url())
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
